"""
__main__.py

This file adds support for running apodwall as a python module instead of invoking the "apodwall"
command line entrypoint. Scheduled tasks use this form ("python -m apodwall") so that they run under
the same interpreter that registered them.

See the following for a nice high level overview of what __main__ is intended for:

https://docs.python.org/3/using/cmdline.html#cmdoption-m
"""

from apodwall.cli import main


if __name__ == "__main__":
    main()
