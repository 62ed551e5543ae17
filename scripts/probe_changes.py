#!/usr/bin/env python3
"""
Probe if the webcam image changed vs LastHash in config.json.
Prints only 'true' or 'false' to stdout (so a workflow can read it).
Nothing is archived and LastHash is not updated. Returns exit 0 always.
"""

import contextlib, io

from webcamlaps import WebcamLapsError, compute_digest, fetch, has_changed, load_config


def probe(config_path: str = "config.json") -> bool:
    # keep stdout clean for the workflow; only the verdict is printed
    with contextlib.redirect_stdout(io.StringIO()):
        try:
            config = load_config(config_path)
            b = fetch(config.image_url)
        except WebcamLapsError:
            return False
        return has_changed(compute_digest(b), config.last_hash)


def main():
    print("true" if probe() else "false")


if __name__ == "__main__":
    main()
