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
import subprocess
import sys
from collections import namedtuple

from commandwrapper import logCommand, warningMsg

LoadCommandRewrite = namedtuple('LoadCommandRewrite', ['old', 'new'])


def readInstallName(library, verbose=False):
    """
    Return the install name (LC_ID_DYLIB) that `library` declares for itself.

    `otool -D` prints the file name on the first line and the install name on the second one. Libraries
    without an install name only produce the first line, in that case the base name is what the linker
    records in the load command. The same goes for files otool can't read (e.g. linker scripts named .so).
    """
    command = ['otool', '-D', library]
    logCommand('Install name:', command, verbose)
    try:
        lines = subprocess.check_output(command).decode('utf-8').splitlines()
    except (subprocess.CalledProcessError, OSError) as e:
        if verbose:
            print(warningMsg('Could not read install name of ' + library + ': ' + str(e)), file=sys.stderr)
        return os.path.basename(library)
    if len(lines) < 2:
        return os.path.basename(library)
    return lines[1].strip()


def applyRewrites(output, rewrites, verbose=False):
    if not rewrites:
        return
    command = ['install_name_tool']
    for rewrite in rewrites:
        command.extend(['-change', rewrite.old, rewrite.new])
    command.append(output)
    logCommand('Rewrite:', command, verbose)
    subprocess.check_call(command)
