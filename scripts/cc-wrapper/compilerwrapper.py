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

from commandwrapper import *

# extensions that the build system always produces but the platform's toolchain knows by another name
ALTERNATE_EXTENSIONS = {
    Platform.darwin: {'.so': '.dylib'},
}


class CompilerWrapper(CommandWrapper):
    """Everything that doesn't produce a linked output file: compile steps, preprocessing, --version, ..."""

    def computeWrapperCommand(self):
        self.wrapperArgs = list(self.invocation.args)


class QueryFileNameWrapper(CommandWrapper):
    """
    Handles --print-file-name=<name>.

    Bazel always names shared libraries .so, while the compiler on macOS looks for .dylib files. If the
    compiler can't find the requested file we retry with the platform's extension. Like the compiler itself
    we print the name unchanged if nothing is found.
    """

    def run(self):
        self.computeWrapperCommand()
        name = self.invocation.queryName
        found = self.queryFileName(name)
        if found is None:
            alternate = alternateFileName(name, self.config.platform)
            if alternate:
                found = self.queryFileName(alternate)
        print(found or name)
        return 0

    def computeWrapperCommand(self):
        self.wrapperArgs = list(self.invocation.args)

    def queryFileName(self, name):
        output = self.runRealCommand(self.wrapperArgs + ['--print-file-name=' + name], capture=True)
        result = output.strip()
        # the compiler just echoes the name if it is not found
        if not result or result == name:
            return None
        return result


def alternateFileName(name, platform):
    root, ext = os.path.splitext(name)
    alternate = ALTERNATE_EXTENSIONS.get(platform, {}).get(ext)
    if alternate is None:
        return None
    return root + alternate
