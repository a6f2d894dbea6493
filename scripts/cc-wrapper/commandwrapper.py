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
import subprocess
import tempfile
from enum import Enum

import termcolor

from checksetup import *


def colored(msg, *args, **kwargs):
    # stdout belongs to the compiler, all our messages go to stderr
    if not sys.stderr.isatty():
        return msg
    return termcolor.colored(msg, *args, **kwargs)


def errorMsg(msg):
    return colored(msg, 'red', attrs=['bold'])


def infoMsg(msg):
    return colored(msg, 'magenta')


def warningMsg(msg):
    return colored(msg, 'yellow', attrs=['bold'])


class Action(Enum):
    link = 0  # the compiler driver links unless told otherwise
    compile = 1
    query_file_path = 2


def highlightForAction(action, msg):
    if action == Action.compile:
        return colored(msg, 'blue', attrs=['bold'])
    elif action == Action.link:
        return colored(msg, 'green', attrs=['bold'])
    elif action == Action.query_file_path:
        return colored(msg, 'cyan', attrs=['bold'])
    else:
        print(warningMsg('WARNING: invalid action: ' + str(action)), file=sys.stderr)
        return infoMsg(msg)


def logCommand(msg, command, verbose, action=None):
    if not verbose:
        return
    line = msg + ' ' + quoteCommand(command)
    if action is None:
        print(colored(line, 'white', attrs=['bold']), file=sys.stderr)
    else:
        print(highlightForAction(action, line), file=sys.stderr)


class CommandWrapperError(RuntimeError):
    def __init__(self, msg, args):
        super().__init__(msg, "Caused by:", quoteCommand(args))


def commandLineLength(command):
    return sum(len(arg) + 1 for arg in command)


def quoteResponseFileArgument(arg):
    return '"' + arg.replace('\\', '\\\\').replace('"', '\\"') + '"'


def writeResponseFile(f, args):
    for arg in args:
        f.write(quoteResponseFileArgument(arg))
        f.write('\n')


class CommandWrapper:
    def __init__(self, invocation, config):
        self.invocation = invocation
        self.config = config
        self.action = invocation.action
        self.wrapperArgs = list()

    def run(self):
        self.computeWrapperCommand()
        self.runRealCommand(self.wrapperArgs)
        self.afterRealCommand()
        return 0

    def computeWrapperCommand(self):
        raise NotImplementedError

    # allow overriding this for post processing the output file
    def afterRealCommand(self):
        pass

    def runRealCommand(self, args, capture=False):
        """
        Run the real compiler with `args` and return its stdout if `capture` is set.

        If the compiler fails the captured output is passed on and we exit with the same exit code.
        """
        command = [self.config.compiler] + list(args)
        try:
            return self.runCommand('Original:', command, capture)
        except subprocess.CalledProcessError as e:
            if e.stdout:
                sys.stdout.write(e.stdout.decode('utf-8', errors='replace'))
                sys.stdout.flush()
            if e.stderr:
                sys.stderr.write(e.stderr.decode('utf-8', errors='replace'))
            print(errorMsg("REAL COMMAND FAILED: " + e.cmd), file=sys.stderr)
            sys.exit(e.returncode)

    def runCommand(self, msg, command, capture=False):
        # the arguments go into a response file if they could exceed the command line length limit
        if commandLineLength(command) < MAX_COMMAND_LINE_LENGTH:
            return self._execute(msg, command, capture)

        fd, responseFile = tempfile.mkstemp(prefix='cc_wrapper-', suffix='.params')
        try:
            with os.fdopen(fd, 'w') as f:
                writeResponseFile(f, command[1:])
            return self._execute(msg, [command[0], '@' + responseFile], capture)
        finally:
            try:
                os.remove(responseFile)
            except OSError:
                pass  # it lives in the temporary directory anyway

    def _execute(self, msg, command, capture):
        logCommand(msg, command, self.config.verbose, self.action)
        try:
            result = subprocess.run(command, check=True, stdout=subprocess.PIPE if capture else None)
        except subprocess.CalledProcessError as e:
            # we want the error message as a plain string so we can copy-paste it to the shell
            e.cmd = quoteCommand(e.cmd)
            raise
        if capture:
            return result.stdout.decode('utf-8')
        return None
