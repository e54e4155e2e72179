#!/usr/bin/env python3
# PYTHON_ARGCOMPLETE_OK

# https://stackoverflow.com/questions/14500183/in-python-can-i-call-the-main-of-an-imported-module
from pydepcache.__main__ import main

if __name__ == "__main__":
    main()
