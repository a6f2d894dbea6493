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

import unittest
import os
import tempfile
import sys
sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), '..'))

from arguments import Invocation, LinkerState, expandResponseFiles
from checksetup import Platform
from commandwrapper import Action, CommandWrapperError


def parse(args, platform=Platform.linux):
    if type(args) == str:
        args = args.split()
    return Invocation.parse(args, platform)


class TestArguments(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.oldCwd = os.getcwd()
        cls.tempdir = tempfile.TemporaryDirectory()
        os.chdir(cls.tempdir.name)
        cls.root = os.getcwd()
        os.makedirs('include')
        os.makedirs('lib/sub')
        with open('args.rsp', 'w') as f:
            f.write('-c foo.c\n-o "out dir/foo.o"\n-Iinclude @nested.rsp\n')
        with open('nested.rsp', 'w') as f:
            f.write("-DNAME='a b'\n")

    @classmethod
    def tearDownClass(cls):
        os.chdir(cls.oldCwd)
        cls.tempdir.cleanup()

    def testDefaultAction(self):
        invocation = parse('foo.o -o foo')
        self.assertEqual(invocation.action, Action.link)
        self.assertTrue(invocation.isLinkWithOutput)
        self.assertEqual(invocation.args, ['foo.o', '-o', 'foo'])
        self.assertFalse(parse('foo.o').isLinkWithOutput)

    def testCompile(self):
        invocation = parse('-c foo.c -ofoo.o')
        self.assertEqual(invocation.action, Action.compile)
        self.assertEqual(invocation.output, 'foo.o')
        self.assertFalse(invocation.isLinkWithOutput)
        self.assertEqual(invocation.args, ['-c', 'foo.c', '-ofoo.o'])

    def testIncludePaths(self):
        absolute = os.path.join(self.root, 'include')
        invocation = parse(['-c', 'foo.c', '-I' + absolute, '-isystem', absolute, '-iquote', 'include',
                            '-idirafter' + absolute])
        self.assertEqual(invocation.args, ['-c', 'foo.c', '-Iinclude', '-isystem', 'include', '-iquote', 'include',
                                           '-idirafterinclude'])

    def testMissingIncludePathsDropped(self):
        invocation = parse('-c foo.c -Imissing -isystem missing/too -iquote include -idirafter nowhere')
        self.assertEqual(invocation.args, ['-c', 'foo.c', '-iquote', 'include'])
        for arg in invocation.args:
            self.assertNotIn('missing', arg)
            self.assertNotIn('nowhere', arg)

    def testLibraries(self):
        invocation = parse('foo.o -o foo -lbar -l baz --library qux --library=quux')
        self.assertEqual(invocation.libraries, ['bar', 'baz', 'qux', 'quux'])
        self.assertEqual(invocation.args, ['foo.o', '-o', 'foo', '-lbar', '-lbaz', '-lqux', '-lquux'])

    def testLibraryPaths(self):
        absolute = os.path.join(self.root, 'lib', 'sub', '..')
        invocation = parse(['foo.o', '-L' + absolute, '-L', 'lib/sub', '--library-path', 'missing',
                            '--library-path=lib', '-Lmissing/too'])
        self.assertEqual(invocation.libraryPaths, ['lib', os.path.join('lib', 'sub'), 'lib'])
        self.assertEqual(invocation.args, ['foo.o', '-Llib', '-L' + os.path.join('lib', 'sub'), '-Llib'])

    def testXlinkerRpath(self):
        invocation = parse('foo.o -o foo -Xlinker -rpath -Xlinker $ORIGIN/../lib -Xlinker -rpath=/abs')
        self.assertEqual(invocation.rpaths, ['$ORIGIN/../lib', '/abs'])
        self.assertEqual(invocation.args, ['foo.o', '-o', 'foo'])
        self.assertEqual(invocation.linkerState, LinkerState.idle)

    def testCommaJoinedRpath(self):
        invocation = parse('foo.o -o foo -Wl,-rpath,$ORIGIN,--as-needed,-rpath=lib -Wl,-rpath -Wl,/abs')
        self.assertEqual(invocation.rpaths, ['$ORIGIN', 'lib', '/abs'])
        self.assertEqual(invocation.args, ['foo.o', '-o', 'foo', '-Wl,--as-needed'])

    def testMixedLinkerForms(self):
        invocation = parse('foo.o -o foo -Xlinker -rpath -Wl,/abs')
        self.assertEqual(invocation.rpaths, ['/abs'])
        self.assertEqual(invocation.args, ['foo.o', '-o', 'foo'])

    def testOtherLinkerFlagsForwarded(self):
        invocation = parse('foo.o -o foo -Xlinker --version-script -Xlinker foo.map -Wl,-z,defs')
        self.assertEqual(invocation.rpaths, [])
        self.assertEqual(invocation.args, ['foo.o', '-o', 'foo', '-Xlinker', '--version-script', '-Xlinker',
                                           'foo.map', '-Wl,-z,defs'])

    def testDeadStripDylibsDropped(self):
        invocation = parse('foo.o -o libfoo.dylib -Xlinker -dead_strip_dylibs -Wl,-dead_strip_dylibs,-x',
                           Platform.darwin)
        self.assertNotIn('-dead_strip_dylibs', invocation.args)
        for arg in invocation.args:
            self.assertNotIn('dead_strip_dylibs', arg)
        self.assertIn('-Wl,-x', invocation.args)

    def testDanglingRpathForwarded(self):
        invocation = parse('foo.o -Xlinker -rpath -o foo')
        self.assertEqual(invocation.rpaths, [])
        self.assertEqual(invocation.args, ['foo.o', '-Xlinker', '-rpath', '-o', 'foo'])

    def testRpathsKeptWithoutLinkOutput(self):
        # nothing to resolve against: forwarded as they are
        invocation = parse('-c foo.c -o foo.o -Wl,-rpath,/abs -Xlinker -rpath -Xlinker $ORIGIN')
        self.assertEqual(invocation.args, ['-c', 'foo.c', '-o', 'foo.o', '-Wl,-rpath,/abs', '-Wl,-rpath,$ORIGIN'])
        invocation = parse('foo.o -Wl,-rpath,lib')
        self.assertEqual(invocation.args, ['foo.o', '-Wl,-rpath,lib'])
        # link with output: they are re-emitted after resolution
        invocation = parse('foo.o -o foo -Wl,-rpath,lib')
        self.assertEqual(invocation.args, ['foo.o', '-o', 'foo'])

    def testPrintFileName(self):
        for args in ('--print-file-name=libfoo.so', '--print-file-name libfoo.so', '-print-file-name=libfoo.so'):
            invocation = parse('-m64 ' + args)
            self.assertEqual(invocation.action, Action.query_file_path, args)
            self.assertEqual(invocation.queryName, 'libfoo.so')
            self.assertEqual(invocation.args, ['-m64'])

    def testUnknownFlagsPassedThrough(self):
        invocation = parse('-c foo.c -fPIC -Wall -DFOO=1 --weird-flag')
        self.assertEqual(invocation.args, ['-c', 'foo.c', '-fPIC', '-Wall', '-DFOO=1', '--weird-flag'])

    def testMissingParameter(self):
        for args in ('foo.o -o', 'foo.o -Xlinker', 'foo.o -L', '-c foo.c -I'):
            with self.assertRaises(CommandWrapperError):
                parse(args)

    def testResponseFiles(self):
        self.assertEqual(expandResponseFiles(['@args.rsp', 'bar.c']),
                         ['-c', 'foo.c', '-o', 'out dir/foo.o', '-Iinclude', '-DNAME=a b', 'bar.c'])
        # not a file -> literal argument
        self.assertEqual(expandResponseFiles(['@missing.rsp']), ['@missing.rsp'])
        invocation = parse(['@args.rsp'])
        self.assertEqual(invocation.action, Action.compile)
        self.assertEqual(invocation.output, 'out dir/foo.o')
        self.assertIn('-Iinclude', invocation.args)


if __name__ == '__main__':
    unittest.main()
