# ssidroam/common.py
import os

SUMMARY_FILE = "cycle_summary.json"
LOG_FILE = "roaming.log"


def get_repo_root():
    # `__file__` is inside ssidroam/
    return os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))


def get_data_dir():
    """ROAM_DATA_DIR if set, otherwise <repo>/data."""
    path = os.getenv("ROAM_DATA_DIR") or os.path.join(get_repo_root(), "data")
    os.makedirs(path, exist_ok=True)
    return path


def get_log_file_path():
    data_dir = get_data_dir()
    log_path = os.path.join(data_dir, LOG_FILE)
    if not os.path.exists(log_path):
        open(log_path, "w").close()
    return log_path


def get_summary_path():
    return os.path.join(get_data_dir(), SUMMARY_FILE)
