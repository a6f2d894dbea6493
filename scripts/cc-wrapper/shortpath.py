# Copyright (c) 2015 Alex Richardson
# All rights reserved.
#
# This software was developed by SRI International and the University of
# Cambridge Computer Laboratory under DARPA/AFRL contract FA8750-10-C-0237
# ("CTSRD"), as part of the DARPA CRASH research programme.
#
# This software was developed at the University of Cambridge Computer
# Laboratory with support from a grant from Google, Inc.
#
# Redistribution and use in source and binary forms, with or without
# modification, are permitted provided that the following conditions
# are met:
# 1. Redistributions of source code must retain the above copyright
#    notice, this list of conditions and the following disclaimer.
# 2. Redistributions in binary form must reproduce the above copyright
#    notice, this list of conditions and the following disclaimer in the
#    documentation and/or other materials provided with the distribution.
#
# THIS SOFTWARE IS PROVIDED BY THE AUTHOR AND CONTRIBUTORS ``AS IS AND
# ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED TO, THE
# IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A PARTICULAR PURPOSE
# ARE DISCLAIMED.  IN NO EVENT SHALL THE AUTHOR OR CONTRIBUTORS BE LIABLE
# FOR ANY DIRECT, INDIRECT, INCIDENTAL, SPECIAL, EXEMPLARY, OR CONSEQUENTIAL
# DAMAGES (INCLUDING, BUT NOT LIMITED TO, PROCUREMENT OF SUBSTITUTE GOODS
# OR SERVICES; LOSS OF USE, DATA, OR PROFITS; OR BUSINESS INTERRUPTION)
# HOWEVER CAUSED AND ON ANY THEORY OF LIABILITY, WHETHER IN CONTRACT, STRICT
# LIABILITY, OR TORT (INCLUDING NEGLIGENCE OR OTHERWISE) ARISING IN ANY WAY
# OUT OF THE USE OF THIS SOFTWARE, EVEN IF ADVISED OF THE POSSIBILITY OF
# SUCH DAMAGE.

import os


def _relativeToCwd(path):
    # os.path.relpath() would also collapse '..' segments, which is only valid without symlinks
    if not os.path.isabs(path):
        return path
    cwd = os.getcwd()
    if path == cwd:
        return os.curdir
    if path.startswith(cwd.rstrip(os.sep) + os.sep):
        return path[len(cwd.rstrip(os.sep)) + 1:]
    return os.path.relpath(path)


def _sameFile(a, b):
    try:
        return os.path.samefile(a, b)
    except (OSError, ValueError):
        return False


def shortenPath(path: str):
    """
    Return the shortest spelling of the existing path `path` that still refers to the same file.

    Candidates are tried in this order: relative to the working directory, with up-level segments
    collapsed, and with all symlinks resolved (relative to the working directory again). A candidate
    only replaces the current best one if it is strictly shorter and os.path.samefile() agrees.
    """
    shortest = path
    candidates = (
        _relativeToCwd,
        os.path.normpath,
        lambda p: os.path.relpath(os.path.realpath(p)),
    )
    for candidate in candidates:
        try:
            shorter = candidate(shortest)
        except (OSError, ValueError):
            # e.g. paths on different drives on Windows
            continue
        if len(shorter) < len(shortest) and _sameFile(shorter, path):
            shortest = shorter
    return shortest
