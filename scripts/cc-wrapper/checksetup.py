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
import sys
import shlex
from collections import namedtuple
from enum import Enum

CC_WRAPPER_DIR = os.path.dirname(os.path.realpath(__file__))
ENVVAR_CC = "CC_WRAPPER_CC"
ENVVAR_PLATFORM = "CC_WRAPPER_PLATFORM"
ENVVAR_VERBOSE = "CC_WRAPPER_VERBOSE"

# Stay below the 8191 character limit of cmd.exe, the tightest one we know of
MAX_COMMAND_LINE_LENGTH = 8000

# Bazel collects the shared libraries of a target in _solib_<cpu> directories
SOLIB_DIR_PREFIX = "_solib_"

LIBRARY_PREFIX = "lib"
LIBRARY_EXTENSIONS = ('.so', '.dylib', '.dll')


class Platform(Enum):
    linux = 0
    darwin = 1
    windows = 2

    @classmethod
    def fromName(cls, name: str):
        if name.startswith('linux'):
            return cls.linux
        if name in ('darwin', 'macos', 'osx'):
            return cls.darwin
        if name.startswith('win') or name in ('cygwin', 'msys'):
            return cls.windows
        raise ValueError('Unknown platform: ' + name)

    @property
    def canRewriteLoadCommands(self):
        return self == Platform.darwin

    @property
    def loaderPlaceholder(self):
        return '@loader_path' if self == Platform.darwin else '$ORIGIN'

    @property
    def libraryPathVariable(self):
        if self == Platform.darwin:
            return 'DYLD_LIBRARY_PATH'
        if self == Platform.windows:
            return 'PATH'
        return 'LD_LIBRARY_PATH'


# both spellings are understood regardless of the target platform
LOADER_PLACEHOLDERS = ('$ORIGIN', '${ORIGIN}', '@loader_path', '@executable_path')
# these all mean "the directory of the binary being loaded" and are spelled the target's way when emitted
LOADER_DIR_PLACEHOLDERS = ('$ORIGIN', '${ORIGIN}', '@loader_path')

WrapperConfig = namedtuple('WrapperConfig', ['compiler', 'platform', 'verbose'])


def quoteCommand(command: list):
    newList = [shlex.quote(s) for s in command]
    return " ".join(newList)


# Find executable in $PATH, skipping our own directory so that we don't end up calling ourselves
def findExe(program):
    def is_exe(fpath):
        return os.path.isfile(fpath) and os.access(fpath, os.X_OK)

    fpath, fname = os.path.split(program)
    if fpath:
        if is_exe(program):
            return program
    else:
        for path in os.environ.get("PATH", "").split(os.pathsep):
            path = path.strip('"')
            if not path:
                continue
            if path.startswith(CC_WRAPPER_DIR) or os.path.realpath(path).startswith(CC_WRAPPER_DIR):
                continue
            exe_file = os.path.join(path, program)
            if is_exe(exe_file):
                return exe_file

    return None


def loadConfig(environ=None):
    if environ is None:
        environ = os.environ
    compiler = environ.get(ENVVAR_CC) or findExe('cc')
    if not compiler:
        sys.exit('could not find the C compiler, please make sure $' + ENVVAR_CC + ' is set correctly')
    try:
        platform = Platform.fromName(environ.get(ENVVAR_PLATFORM) or sys.platform)
    except ValueError as e:
        sys.exit(str(e) + ', please make sure $' + ENVVAR_PLATFORM + ' is set correctly')
    return WrapperConfig(compiler=compiler, platform=platform, verbose=bool(environ.get(ENVVAR_VERBOSE)))
