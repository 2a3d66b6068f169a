#!/usr/bin/env python3

"""
Setup script.
"""

import configparser
import pathlib as plib

import setuptools


def extra_requires(cfg_path: plib.Path) -> dict:
    # extras declared in setup.cfg, plus aggregate targets `complete_gpu`, `complete_no_gpu`.
    cfg = configparser.ConfigParser()
    with open(cfg_path, mode="r") as f:
        cfg.read_file(f)

    xtra = dict()
    for xtra_name, xtra_values in cfg["options.extras_require"].items():
        xtra[xtra_name] = [v.strip() for v in xtra_values.splitlines() if v.strip()]

    pkg = {"no_gpu": set(), "gpu": set()}
    pkg_blacklist = {"dev"}
    for xtra_name, xtra_values in xtra.items():
        if xtra_name not in pkg_blacklist:
            pkg["gpu"].update(xtra_values)
            if not xtra_name.endswith("gpu"):
                pkg["no_gpu"].update(xtra_values)
    xtra["complete_no_gpu"] = sorted(pkg["no_gpu"])
    xtra["complete_gpu"] = sorted(pkg["gpu"])
    return xtra


cfg_path = plib.Path(__file__).parent / "setup.cfg"
setuptools.setup(extras_require=extra_requires(cfg_path))
