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

import subprocess
import sys

from commandwrapper import *
from darwinrewriter import applyRewrites, readInstallName
from rpathresolver import RpathResolver


class LinkerWrapper(CommandWrapper):
    """
    Link steps with an output file.

    The rpaths from the command line are replaced by the ones that are actually needed to find the
    libraries passed with -l. On macOS the load commands of the output are rewritten afterwards so that
    most libraries can be found through a single rpath pointing at the _solib_* directory.
    """

    def __init__(self, invocation, config, resolver=None):
        super().__init__(invocation, config)
        self.resolver = resolver or RpathResolver(
            config.platform, installNameReader=lambda library: readInstallName(library, config.verbose))
        self.resolution = None

    def computeWrapperCommand(self):
        self.wrapperArgs = list(self.invocation.args)
        if self.config.platform.canRewriteLoadCommands:
            # make sure install_name_tool has enough room to write longer load commands
            self.wrapperArgs.append('-Wl,-headerpad_max_install_names')

        self.resolution = self.resolver.resolve(self.invocation.rpaths, self.invocation.libraries,
                                                self.invocation.output)
        if self.config.verbose:
            print(infoMsg('Resolved rpaths for ' + self.invocation.output + ': ' + str(self.resolution)),
                  file=sys.stderr)
            if self.resolution.missing:
                # not an error, the library may come from a system directory
                print(warningMsg('WARNING: no rpath found for: ' + ', '.join(sorted(self.resolution.missing))),
                      file=sys.stderr)
        for rpath in self.resolution.rpaths:
            self.wrapperArgs.append('-Wl,-rpath,' + rpath)

    def afterRealCommand(self):
        if not self.resolution.rewrites:
            return
        try:
            applyRewrites(self.invocation.output, self.resolution.rewrites, self.config.verbose)
        except subprocess.CalledProcessError as e:
            print(errorMsg("REWRITING LOAD COMMANDS FAILED: " + quoteCommand(e.cmd)), file=sys.stderr)
            sys.exit(e.returncode)
