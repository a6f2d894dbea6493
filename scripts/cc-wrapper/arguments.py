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
import shlex
from enum import Enum

from checksetup import Platform
from commandwrapper import Action, CommandWrapperError
from shortpath import shortenPath


class LinkerState(Enum):
    idle = 0
    awaiting_rpath = 1


INCLUDE_FLAGS = ('-I', '-iquote', '-isystem', '-idirafter')
QUERY_FLAGS = ('--print-file-name', '-print-file-name')

# -dead_strip_dylibs lets ld64 drop load commands of libraries that look unused, after which
# the declared dependencies of a shared object no longer match its runtime dependencies
DROPPED_LINKER_DIRECTIVES = frozenset(['-dead_strip_dylibs'])


def expandResponseFiles(args):
    """
    Replace every @file argument by the shell-word-split contents of file.

    Response files may reference other response files. An @file that doesn't exist is kept, the
    compiler treats it as a normal argument as well.
    """
    expanded = []
    for arg in args:
        if arg.startswith('@') and os.path.isfile(arg[1:]):
            with open(arg[1:]) as f:
                expanded.extend(expandResponseFiles(shlex.split(f.read())))
        else:
            expanded.append(arg)
    return expanded


class Invocation:
    def __init__(self, platform=Platform.linux):
        self.platform = platform
        self.action = Action.link
        self.output = None
        self.args = []
        self.libraries = []
        self.libraryPaths = []
        self.rpaths = []
        self.queryName = None
        self.linkerState = LinkerState.idle

    @property
    def isLinkWithOutput(self):
        return self.action == Action.link and self.output is not None

    @classmethod
    def parse(cls, args, platform=Platform.linux):
        invocation = cls(platform)
        invocation.parseArguments(expandResponseFiles(args))
        return invocation

    def parseArguments(self, args):
        index = 0
        while index < len(args):
            index = self._parseArgument(args, index)
        self._flushPendingRpath()
        if not self.isLinkWithOutput:
            # there is nothing to resolve them against, keep them as they were
            for rpath in self.rpaths:
                self.args.append('-Wl,-rpath,' + rpath)

    def _nextValue(self, args, index):
        if index + 1 >= len(args):
            raise CommandWrapperError(args[index] + ' flag without parameter!', args)
        return args[index + 1]

    # returns the index of the next argument to parse
    def _parseArgument(self, args, index):
        arg = args[index]
        isLinkerArg = arg == '-Xlinker' or arg.startswith('-Wl,')
        if not isLinkerArg:
            self._flushPendingRpath()

        if arg == '-o':
            self.output = self._nextValue(args, index)
            self.args.extend([arg, self.output])
            return index + 2
        elif arg.startswith('-o'):
            self.output = arg[2:]
            self.args.append(arg)
            return index + 1

        for flag in INCLUDE_FLAGS:
            if arg == flag:
                path = self._nextValue(args, index)
                if os.path.exists(path):
                    self.args.extend([flag, shortenPath(path)])
                return index + 2
            elif arg.startswith(flag):
                path = arg[len(flag):]
                if os.path.exists(path):
                    self.args.append(flag + shortenPath(path))
                return index + 1

        if arg in ('-l', '--library'):
            self._addLibrary(self._nextValue(args, index))
            return index + 2
        elif arg.startswith('--library='):
            self._addLibrary(arg[len('--library='):])
            return index + 1
        elif arg.startswith('-l'):
            self._addLibrary(arg[2:])
            return index + 1

        if arg in ('-L', '--library-path'):
            self._addLibraryPath(self._nextValue(args, index))
            return index + 2
        elif arg.startswith('--library-path='):
            self._addLibraryPath(arg[len('--library-path='):])
            return index + 1
        elif arg.startswith('-L'):
            self._addLibraryPath(arg[2:])
            return index + 1

        if arg == '-Xlinker':
            value = self._nextValue(args, index)
            if self._parseLinkerDirective(value):
                self.args.extend([arg, value])
            return index + 2
        elif arg.startswith('-Wl,'):
            forwarded = [value for value in arg[len('-Wl,'):].split(',') if self._parseLinkerDirective(value)]
            if forwarded:
                self.args.append('-Wl,' + ','.join(forwarded))
            return index + 1

        for flag in QUERY_FLAGS:
            if arg == flag:
                self.action = Action.query_file_path
                self.queryName = self._nextValue(args, index)
                return index + 2
            elif arg.startswith(flag + '='):
                self.action = Action.query_file_path
                self.queryName = arg[len(flag) + 1:]
                return index + 1

        if arg == '-c':
            self.action = Action.compile
        self.args.append(arg)
        return index + 1

    def _addLibrary(self, name):
        self.libraries.append(name)
        self.args.append('-l' + name)

    def _addLibraryPath(self, path):
        if not os.path.exists(path):
            return
        path = shortenPath(path)
        self.libraryPaths.append(path)
        self.args.append('-L' + path)

    def _parseLinkerDirective(self, value):
        """Feed one value passed to the linker through the state machine, return True if it must be forwarded."""
        if self.linkerState == LinkerState.awaiting_rpath:
            self.rpaths.append(value)
            self.linkerState = LinkerState.idle
            return False
        if value == '-rpath':
            self.linkerState = LinkerState.awaiting_rpath
            return False
        for prefix in ('-rpath=', '--rpath='):
            if value.startswith(prefix):
                self.rpaths.append(value[len(prefix):])
                return False
        if value in DROPPED_LINKER_DIRECTIVES:
            return False
        return True

    def _flushPendingRpath(self):
        # -rpath wasn't followed by a linker argument, forward it and let the linker complain
        if self.linkerState == LinkerState.awaiting_rpath:
            self.args.extend(['-Xlinker', '-rpath'])
            self.linkerState = LinkerState.idle
