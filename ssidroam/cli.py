import argparse
import sys
import threading

from ssidroam.config import load_config
from ssidroam.errors import ConfigurationError, PreflightError
from ssidroam.log_setup import get_logger, setup_logging
from ssidroam.preflight import check_privileges, check_required_tools
from ssidroam.roam_runner import RoamingLoop, install_signal_handlers

log = get_logger(__name__, "startup")


def build_parser():
    parser = argparse.ArgumentParser(description="Continuous Wi-Fi roaming between the BSSIDs of one SSID")
    parser.add_argument("-s", "--ssid", dest="SSID_Name", help="Target SSID")
    parser.add_argument("--min-time", dest="Min_Time_Roam", type=int, help="Minimum minutes between roams")
    parser.add_argument("--max-time", dest="Max_Time_Roam", type=int, help="Maximum minutes between roams")
    parser.add_argument("-r", "--min-signal", dest="Min_Signal", type=int, help="Minimum signal in dBm")
    parser.add_argument("-b", "--band", dest="Preferred_Band", help="Preferred band: 2.4G, 5G or 6G")
    parser.add_argument("-i", "--iface", dest="Interface", help="Wi-Fi interface (default: wlan0)")
    parser.add_argument("--log-level", dest="Log_Level", help="DEBUG, INFO, WARNING or ERROR")
    parser.add_argument("-p", "--params", help="Parameters file (default: ./parameters.txt if present)")
    parser.add_argument("--log-file", help="Log file path (default: data/roaming.log)")
    parser.add_argument("--ui-port", type=int, help="Also serve the status UI on this port")
    parser.add_argument("--no-colour", action="store_true", help="Plain console output")
    return parser


def _start_ui(port):
    from webui.server.app import run_server

    t = threading.Thread(target=run_server, kwargs={"port": port}, daemon=True)
    t.start()
    log.info("Started status UI on port %d", port)


def main(argv=None):
    args = build_parser().parse_args(argv)
    cli_values = {k: v for k, v in vars(args).items() if k[0].isupper() and v is not None}

    try:
        config = load_config(cli_values, parameters_file=args.params)
    except ConfigurationError as e:
        setup_logging("INFO", args.log_file, colour=not args.no_colour)
        log.error("Configuration error: %s", e)
        return 2

    setup_logging(config.log_level, args.log_file, colour=not args.no_colour)
    log.info("Configuration loaded:")
    for line in config.describe():
        log.info("  %s", line)

    try:
        check_required_tools()
    except PreflightError as e:
        log.error("%s", e)
        return 1
    check_privileges()

    if args.ui_port:
        _start_ui(args.ui_port)

    loop = RoamingLoop.from_config(config)
    install_signal_handlers(loop.stop_event)
    loop.run_forever()
    return 0


if __name__ == "__main__":
    sys.exit(main())
