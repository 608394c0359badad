"""
Command adapters. subprocess is patched throughout; nothing here touches
a real interface.
"""

import os
import subprocess
from unittest.mock import MagicMock, patch

import pytest

from ssidroam.errors import WirelessControlError
from ssidroam.shell_cmd_wrapper import IpClient, LeaseClient, WirelessClient, run_cmd

from conftest import IP_ADDR_OUTPUT, IP_ROUTE_OUTPUT, WPA_SCAN_RESULTS, WPA_STATUS, FakeRunner, fail, ok


# =============================================================================
# run_cmd
# =============================================================================


class TestRunCmd:
    @patch("subprocess.run")
    def test_success(self, mock_run):
        mock_run.return_value = MagicMock(returncode=0, stdout="OK\n", stderr="")
        r = run_cmd(["wpa_cli", "-i", "wlan0", "ping"], timeout=5)
        assert r.ok and r.output == "OK"
        args, kwargs = mock_run.call_args
        assert args[0] == ["wpa_cli", "-i", "wlan0", "ping"]
        assert kwargs["timeout"] == 5

    @patch("subprocess.run")
    def test_sudo_prefix(self, mock_run):
        mock_run.return_value = MagicMock(returncode=0, stdout="", stderr="")
        r = run_cmd(["ip", "link", "set", "wlan0", "up"], sudo=True)
        assert r.cmd[0] == "sudo"
        assert mock_run.call_args[0][0][:2] == ["sudo", "ip"]

    @patch("subprocess.run", side_effect=subprocess.TimeoutExpired(cmd="wpa_cli", timeout=10, output=b"partial"))
    def test_timeout_is_data(self, mock_run):
        r = run_cmd(["wpa_cli", "roam", "aa:bb:cc:00:00:02"], timeout=10)
        assert r.timed_out
        assert not r.ok
        assert r.returncode is None
        assert r.stdout == "partial"

    @patch("subprocess.run", side_effect=FileNotFoundError("no such file: iwconfig"))
    def test_missing_binary(self, mock_run):
        r = run_cmd(["iwconfig", "wlan0"])
        assert r.returncode == 127
        assert not r.ok


# =============================================================================
# WirelessClient
# =============================================================================


def wireless(responses):
    runner = FakeRunner(responses)
    return WirelessClient("wlan0", sudo=True, runner=runner), runner


class TestWirelessClient:
    def test_scan_trigger(self):
        client, _ = wireless({"wpa_cli -i wlan0 scan": ok("OK")})
        assert client.scan() is True
        client, _ = wireless({"wpa_cli -i wlan0 scan": ok("FAIL-BUSY")})
        assert client.scan() is False

    def test_scan_results_typed(self):
        client, _ = wireless({"wpa_cli -i wlan0 scan_results": ok(WPA_SCAN_RESULTS)})
        records = client.scan_results()
        assert records[0].bssid == "aa:bb:cc:00:00:01"

    def test_status(self):
        client, runner = wireless({"wpa_cli -i wlan0 status": ok(WPA_STATUS)})
        assert client.status().bssid == "aa:bb:cc:00:00:01"
        assert runner.calls[0]["sudo"] is True

    def test_status_failure_raises(self):
        client, _ = wireless({"wpa_cli -i wlan0 status": fail(timed_out=True)})
        with pytest.raises(WirelessControlError) as exc:
            client.status()
        assert exc.value.timed_out

    def test_roam_uses_roam_timeout(self):
        client, runner = wireless({"wpa_cli -i wlan0 roam": ok("OK")})
        assert client.roam("aa:bb:cc:00:00:02").ok
        assert runner.calls[0]["cmd"] == ["wpa_cli", "-i", "wlan0", "roam", "aa:bb:cc:00:00:02"]
        assert runner.calls[0]["timeout"] == 10.0

    def test_ping(self):
        client, _ = wireless({"wpa_cli -i wlan0 ping": ok("PONG")})
        assert client.ping()
        client, _ = wireless({})
        assert not client.ping()

    def test_network_id_for(self):
        listing = "network id / ssid / bssid / flags\n0\tCorpNet\taa:bb:cc:00:00:02\t[CURRENT]\n"
        client, _ = wireless({"wpa_cli -i wlan0 list_networks": ok(listing)})
        assert client.network_id_for("aa:bb:cc:00:00:02") == "0"

    def test_link_layer_queries(self):
        client, _ = wireless({
            "iw dev wlan0 link": ok("Connected to aa:bb:cc:00:00:02 (on wlan0)\n\tSSID: CorpNet\n"),
            "iwconfig wlan0": ok('wlan0  ESSID:"CorpNet"  Access Point: AA:BB:CC:00:00:03'),
        })
        assert client.iw_link_bssid() == "aa:bb:cc:00:00:02"
        assert client.iwconfig_bssid() == "aa:bb:cc:00:00:03"
        assert client.iw_link_ssid() == "CorpNet"
        assert client.iwconfig_ssid() == "CorpNet"

    def test_iw_scan_with_explicit_frequencies(self, iw_scan_output):
        client, runner = wireless({"iw dev wlan0 scan": ok(iw_scan_output)})
        assert client.iw_scan(freqs=[2412, 5180]).ok
        assert runner.calls[0]["cmd"] == ["iw", "dev", "wlan0", "scan", "freq", "2412", "5180"]


# =============================================================================
# IpClient / LeaseClient
# =============================================================================


class TestIpClient:
    def make(self, responses, tmp_path):
        resolv = tmp_path / "resolv.conf"
        resolv.write_text("nameserver 192.168.1.1\n")
        runner = FakeRunner(responses)
        return IpClient(sudo=False, runner=runner, resolv_conf=str(resolv)), runner

    def test_address_and_gateway(self, tmp_path):
        ip, _ = self.make({"ip -4 addr show wlan0": ok(IP_ADDR_OUTPUT), "ip route": ok(IP_ROUTE_OUTPUT)}, tmp_path)
        assert ip.address("wlan0") == "192.168.1.23"
        assert ip.gateway("wlan0") == "192.168.1.1"

    def test_ping_command(self, tmp_path):
        ip, runner = self.make({"ping": ok()}, tmp_path)
        assert ip.ping("192.168.1.1")
        assert runner.calls[0]["cmd"] == ["ping", "-c", "1", "-W", "2", "192.168.1.1"]

    def test_network_info(self, tmp_path):
        ip, _ = self.make({
            "ip -4 addr show wlan0": ok(IP_ADDR_OUTPUT),
            "ip route": ok(IP_ROUTE_OUTPUT),
            "ip link show wlan0": ok("3: wlan0: <UP> mtu 1500 state UP mode DORMANT"),
        }, tmp_path)
        info = ip.network_info("wlan0")
        assert info.cidr == "192.168.1.23/24"
        assert info.gateway == "192.168.1.1"
        assert info.dns_servers == ["192.168.1.1"]
        assert info.link_state == "UP"

    def test_missing_resolv_conf(self, tmp_path):
        ip = IpClient(sudo=False, runner=FakeRunner(), resolv_conf=str(tmp_path / "missing"))
        assert ip.dns_servers() == []


class TestLeaseClient:
    def test_run_dir_probe(self, tmp_path):
        assert LeaseClient(sudo=False, runner=FakeRunner(), run_dir=str(tmp_path)).run_dir_writable()
        assert not LeaseClient(sudo=False, runner=FakeRunner(), run_dir=str(tmp_path / "nope")).run_dir_writable()

    def test_dhcpcd_running(self):
        assert LeaseClient(sudo=False, runner=FakeRunner({"pgrep -f dhcpcd": ok("412\n")})).dhcpcd_running()
        assert not LeaseClient(sudo=False, runner=FakeRunner()).dhcpcd_running()

    def test_dhclient_commands(self):
        runner = FakeRunner({"dhclient": ok()})
        lease = LeaseClient(sudo=True, runner=runner)
        lease.dhclient_release("wlan0")
        lease.dhclient_request("wlan0")
        assert runner.commands() == ["dhclient -r wlan0", "dhclient -v wlan0"]
        assert runner.calls[1]["timeout"] == 30.0

    def test_dhcpcd_stop_and_launch_are_separate(self):
        runner = FakeRunner({"pkill": ok(), "dhcpcd": ok()})
        lease = LeaseClient(sudo=False, runner=runner)
        lease.dhcpcd_stop()
        lease.dhcpcd_launch("wlan0")
        assert runner.commands() == ["pkill -x dhcpcd", "dhcpcd wlan0"]

    @patch("ssidroam.shell_cmd_wrapper.subprocess.Popen")
    def test_dhcpcd_start_runs_in_foreground(self, mock_popen, tmp_path):
        lease = LeaseClient(sudo=True, runner=FakeRunner(), run_dir=str(tmp_path))
        proc, log_path = lease.dhcpcd_start("wlan0")
        assert proc is mock_popen.return_value
        assert mock_popen.call_args[0][0] == ["sudo", "dhcpcd", "-B", "wlan0"]
        os.remove(log_path)
