#!/usr/bin/env python
"""
Run management commands against the test project, e.g.

    ./testmanage.py makemigrations django_blog_search
    ./testmanage.py --postgres migrate
"""

import argparse
import os
import sys
import warnings

from django.core.management import execute_from_command_line

os.environ["DJANGO_SETTINGS_MODULE"] = "testapp.settings"
sys.path.append("tests")


def make_parser():
    parser = argparse.ArgumentParser()
    parser.add_argument(
        "--postgres",
        action="store_true",
        help="Use PostgreSQL (configured with the DATABASE_* env vars)",
    )
    parser.add_argument(
        "--deprecation",
        choices=["all", "none"],
        default="none",
    )
    return parser


def main():
    args, rest = make_parser().parse_known_args()

    if args.postgres:
        os.environ["DATABASE_ENGINE"] = "postgresql"

    if args.deprecation == "all":
        warnings.simplefilter("default", DeprecationWarning)
        warnings.simplefilter("default", PendingDeprecationWarning)

    execute_from_command_line([sys.argv[0], *rest])


if __name__ == "__main__":
    main()
