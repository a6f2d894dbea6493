#!/usr/bin/env python3

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

import sys

from arguments import Invocation
from checksetup import loadConfig
from commandwrapper import Action, CommandWrapperError, errorMsg
from compilerwrapper import CompilerWrapper, QueryFileNameWrapper
from linkerwrapper import LinkerWrapper


def createWrapper(argv, config):
    invocation = Invocation.parse(argv, config.platform)
    if invocation.action == Action.query_file_path:
        # --print-file-name never compiles or links anything
        return QueryFileNameWrapper(invocation, config)
    elif invocation.isLinkWithOutput:
        return LinkerWrapper(invocation, config)
    else:
        return CompilerWrapper(invocation, config)


def main(argv=None):
    if argv is None:
        argv = sys.argv[1:]
    config = loadConfig()
    try:
        wrapper = createWrapper(argv, config)
        exitCode = wrapper.run()
    except CommandWrapperError as e:
        sys.exit(errorMsg('cc_wrapper: ' + ' '.join(str(a) for a in e.args)))
    sys.exit(exitCode)


if __name__ == '__main__':
    main()
