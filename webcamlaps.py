#!/usr/bin/env python3
"""
Watches a single JPG webcam. Every `Interval` seconds the image is downloaded and
its SHA-256 compared with the last archived one; when the bytes change, the image
is saved to:

  images/<YYYY.MM.DD>/<YYYY.MM.DD_HH-mm-ss>.jpg

State lives in config.json (working directory):

  {
    "LastHash": null,          # base64 SHA-256 of the last archived image
    "Interval": 5,             # seconds between checks
    "ImageUrl": "https://..."  # image to poll
  }

Missing or invalid Interval/ImageUrl values are reset to defaults and written back.

Notes:
  - TLS certificates are NOT verified (INSECURE_SKIP_VERIFY). The camera endpoint
    is fixed and known; flip the flag to restore verification.
  - Runs until killed. Errors inside a check are logged and the next check runs
    as usual.

Requires: requests
"""

import os, sys, time, json, base64, hashlib, traceback
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

import requests
import urllib3

# ---------- CONFIG ----------
CONFIG_FILE = "config.json"
BASE_DIR = "images"
DEFAULT_INTERVAL = 5  # seconds
MAX_INTERVAL = 2**31 - 1  # int32 seconds; keeps time.sleep in range
DEFAULT_IMAGE_URL = "https://www.th-deg.de/static/images/webcam.jpg"

HEADERS = {
    "User-Agent": "Mozilla/5.0 (WebCamLaps/1.0)",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
}
TIMEOUT = 20
INSECURE_SKIP_VERIFY = True
# ---------------------------


def log(*a, level: str = "INFO") -> None:
    stamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    print(stamp, "[webcamlaps]", level, *a, flush=True)


def log_error(msg: str, err: BaseException) -> None:
    detail = "".join(traceback.format_exception(type(err), err, err.__traceback__))
    log(msg, "\n" + detail.rstrip(), level="ERROR")


# ---------- errors ----------
class WebcamLapsError(Exception):
    pass


class ConfigError(WebcamLapsError):
    """config.json exists but can't be read/parsed, or can't be written."""


class FetchError(WebcamLapsError):
    """Download failed: network, timeout, HTTP status or empty body."""


class FilesystemError(WebcamLapsError):
    """Image directory or file couldn't be written."""


# ---------- config store ----------
@dataclass
class Config:
    last_hash: Optional[str] = None
    interval: int = DEFAULT_INTERVAL
    image_url: str = DEFAULT_IMAGE_URL

    def to_dict(self) -> dict:
        # key order is the on-disk order
        return {
            "LastHash": self.last_hash,
            "Interval": self.interval,
            "ImageUrl": self.image_url,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "tuple[Config, List[str]]":
        """Build a Config from the on-disk document.

        Returns (config, fixed) where `fixed` names the keys that were missing
        or invalid and got their default.
        """
        fixed = []

        url = data.get("ImageUrl")
        if not isinstance(url, str) or not url.strip():
            url = DEFAULT_IMAGE_URL
            fixed.append("ImageUrl")

        interval = data.get("Interval")
        if isinstance(interval, float) and interval.is_integer():
            interval = int(interval)
        # bool is an int subclass; "Interval": true is not a valid interval
        if isinstance(interval, bool) or not isinstance(interval, int) or not 0 < interval <= MAX_INTERVAL:
            interval = DEFAULT_INTERVAL
            fixed.append("Interval")

        last = data.get("LastHash")
        if not isinstance(last, str) or not last:
            last = None

        return cls(last_hash=last, interval=interval, image_url=url), fixed


def save_config(config: Config, path: str = CONFIG_FILE) -> None:
    text = json.dumps(config.to_dict(), indent=2)
    tmp = path + ".tmp"
    try:
        with open(tmp, "w", encoding="utf-8") as f:
            f.write(text + "\n")
        os.replace(tmp, path)
    except OSError as e:
        raise ConfigError(f"cannot write {path}: {e}") from e
    log("Config saved.")


def load_config(path: str = CONFIG_FILE) -> Config:
    if not os.path.exists(path):
        config = Config()
        save_config(config, path)
        log("Config file not found. Created default config.")
        return config

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise ConfigError(f"cannot read {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must hold a JSON object, got {type(data).__name__}")

    config, fixed = Config.from_dict(data)
    if "ImageUrl" in fixed:
        log("ImageUrl not found or invalid in config. Set to default ImageUrl.")
    if "Interval" in fixed:
        log("Interval not found or invalid in config. Set to default interval.")
    if fixed:
        save_config(config, path)

    log(f"Config loaded. Interval: {config.interval} seconds, ImageUrl: {config.image_url}")
    return config


# ---------- fetch ----------
def fetch(url: str, *, insecure: bool = INSECURE_SKIP_VERIFY, timeout: float = TIMEOUT,
          session: Optional[requests.Session] = None) -> bytes:
    if insecure:
        urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
    getter = session.get if session is not None else requests.get
    try:
        r = getter(url, headers=HEADERS, timeout=timeout, verify=not insecure)
        r.raise_for_status()
    except requests.RequestException as e:
        raise FetchError(f"GET {url} failed: {e}") from e
    if not r.content:
        raise FetchError(f"GET {url} returned an empty body")
    return r.content


# ---------- change detection / archive ----------
def compute_digest(data: bytes) -> str:
    digest = base64.b64encode(hashlib.sha256(data).digest()).decode("ascii")
    log(f"Computed hash: {digest}")
    return digest


def has_changed(digest: str, last_digest: Optional[str]) -> bool:
    return last_digest is None or digest != last_digest


def archive_path(now: datetime, base_dir: str = BASE_DIR) -> str:
    day_dir = os.path.join(base_dir, now.strftime("%Y.%m.%d"))
    return os.path.join(day_dir, now.strftime("%Y.%m.%d_%H-%M-%S") + ".jpg")


def archive_image(data: bytes, *, base_dir: str = BASE_DIR, now: Optional[datetime] = None) -> str:
    path = archive_path(now or datetime.now(), base_dir)
    # same second twice -> suffix instead of overwrite
    stem, idx = path[:-4], 1
    while os.path.exists(path):
        path = f"{stem}_{idx}.jpg"; idx += 1
    tmp = path + ".tmp"
    try:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(tmp, "wb") as f:
            f.write(data)
        os.replace(tmp, path)
    except OSError as e:
        raise FilesystemError(f"cannot write {path}: {e}") from e
    log(f"Saved image to {path}")
    return path


# ---------- loop ----------
CHANGED = "changed"
UNCHANGED = "unchanged"


@dataclass
class TickResult:
    state: str
    digest: str
    path: Optional[str] = None


@dataclass
class Watcher:
    """Owns the one Config and runs fetch -> compare -> archive -> sleep."""

    config: Config
    config_path: str = CONFIG_FILE
    base_dir: str = BASE_DIR
    insecure: bool = INSECURE_SKIP_VERIFY
    timeout: float = TIMEOUT
    fetcher: Callable[..., bytes] = field(default=fetch, repr=False)
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)
    clock: Callable[[], datetime] = field(default=datetime.now, repr=False)
    session: requests.Session = field(default_factory=requests.Session, repr=False)

    def tick(self) -> TickResult:
        log("Downloading image...")
        data = self.fetcher(self.config.image_url, insecure=self.insecure,
                            timeout=self.timeout, session=self.session)
        digest = compute_digest(data)

        if not has_changed(digest, self.config.last_hash):
            log("Image has not changed.")
            return TickResult(UNCHANGED, digest)

        log("Image has changed. Saving new image...")
        path = archive_image(data, base_dir=self.base_dir, now=self.clock())
        previous, self.config.last_hash = self.config.last_hash, digest
        try:
            save_config(self.config, self.config_path)
        except ConfigError:
            # memory must not claim a hash the file doesn't hold
            self.config.last_hash = previous
            raise
        return TickResult(CHANGED, digest, path)

    def run(self, max_ticks: Optional[int] = None) -> int:
        ticks = 0
        while max_ticks is None or ticks < max_ticks:
            try:
                self.tick()
            except Exception as e:
                log_error("An error occurred while processing the image.", e)
            ticks += 1
            self.sleep(self.config.interval)
        return ticks


def main() -> int:
    log("Application started.")
    try:
        config = load_config()
    except ConfigError as e:
        log_error("Cannot start without a valid config.", e)
        return 1

    try:
        Watcher(config).run()
    except KeyboardInterrupt:
        log("Stopped.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
