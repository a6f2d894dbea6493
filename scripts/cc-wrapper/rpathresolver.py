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

import glob
import os
import re
from collections import deque

from checksetup import (LIBRARY_PREFIX, LIBRARY_EXTENSIONS, LOADER_DIR_PLACEHOLDERS, LOADER_PLACEHOLDERS,
                        SOLIB_DIR_PREFIX, Platform)
from darwinrewriter import LoadCommandRewrite, readInstallName

# priority classes, lower ones are tried first
LOADER_RELATIVE = 0
ABSOLUTE = 1
OTHER_RELATIVE = 2

# how many directories deep we look for a loader relative rpath when the output directory is unknown
# (bazel-out/<config>/bin is the deepest prefix bazel puts in front of its outputs)
MAX_GLOB_DEPTH = 3

_VERSIONED_LIBRARY = re.compile(r'^(?P<name>.+)\.so(\.\d+)+$')


def libraryName(filename: str):
    """
    Return the name to pass to -l to link against the file `filename`, or None if it is not a shared library.

    libfoo.so, libfoo.so.1.2, libfoo.dylib and libfoo.dll all yield 'foo'.
    """
    if not filename.startswith(LIBRARY_PREFIX):
        return None
    rest = filename[len(LIBRARY_PREFIX):]
    match = _VERSIONED_LIBRARY.match(rest)
    if match:
        return match.group('name')
    for ext in LIBRARY_EXTENSIONS:
        if rest.endswith(ext) and len(rest) > len(ext):
            return rest[:-len(ext)]
    return None


def splitLoaderPlaceholder(rpath: str, placeholders=LOADER_PLACEHOLDERS):
    """Return the part of `rpath` after the loader relative placeholder or None if there is no placeholder."""
    for placeholder in placeholders:
        if rpath == placeholder or rpath.startswith(placeholder + '/'):
            return rpath[len(placeholder):]
    return None


def canonicalRpath(rpath: str, platform: Platform):
    """Spell the loader directory placeholder of `rpath` the way the dynamic loader of `platform` expects it."""
    rest = splitLoaderPlaceholder(rpath, LOADER_DIR_PLACEHOLDERS)
    if rest is None:
        return rpath
    return platform.loaderPlaceholder + rest


def rpathPriority(rpath: str):
    if splitLoaderPlaceholder(rpath) is not None:
        return LOADER_RELATIVE
    if os.path.isabs(rpath):
        return ABSOLUTE
    return OTHER_RELATIVE


def sortRpaths(rpaths):
    # sorted() is stable, rpaths of the same class keep their order
    return sorted(rpaths, key=rpathPriority)


class Resolution:
    def __init__(self, libraries):
        self.missing = set(libraries)
        self.rpaths = []
        self.rewrites = []

    def satisfy(self, library):
        self.missing.remove(library)

    def keepRpath(self, rpath):
        if rpath not in self.rpaths:
            self.rpaths.append(rpath)

    def __repr__(self):
        return 'Resolution(rpaths=%r, rewrites=%r, missing=%r)' % (self.rpaths, self.rewrites, sorted(self.missing))


class Candidate:
    """An rpath as given on the command line together with the directory it refers to right now."""
    def __init__(self, rpath, directory, emitted):
        self.rpath = rpath
        self.directory = directory
        # what ends up on the linker command line if the rpath is needed
        self.emitted = emitted


class RpathResolver:
    def __init__(self, platform=Platform.linux, installNameReader=None, environ=None):
        self.platform = platform
        self.readInstallName = installNameReader or readInstallName
        self.environ = os.environ if environ is None else environ
        self.installNames = {}

    def resolve(self, rpaths, libraries, output):
        state = Resolution(libraries)
        self.installNames = {}
        rpaths = list(rpaths)
        # GHC links some throwaway libraries (e.g. for Template Haskell) into a temporary directory
        temporary = os.path.isabs(output)
        if temporary and not rpaths:
            searchPath = self.environ.get(self.platform.libraryPathVariable, '')
            rpaths = [p for p in searchPath.split(os.pathsep) if p]
        outputDir = os.path.dirname(output) or os.curdir
        candidates = [self.resolveRpath(rpath, outputDir, temporary) for rpath in sortRpaths(rpaths)]

        if self.platform.canRewriteLoadCommands and state.missing:
            aggregation = self.findAggregationDir(candidates, outputDir, temporary)
            if aggregation and self._resolveAggregated(aggregation, state):
                candidates = [c for c in candidates if c.emitted != aggregation.emitted]

        for candidate in candidates:
            if not state.missing:
                break
            self._resolveShallow(candidate, state)
        return state

    def installName(self, path):
        if path not in self.installNames:
            self.installNames[path] = self.readInstallName(path)
        return self.installNames[path]

    def resolveRpath(self, rpath, outputDir, temporary=False):
        rest = splitLoaderPlaceholder(rpath)
        if rest is None:
            return Candidate(rpath, rpath, rpath)
        emitted = canonicalRpath(rpath, self.platform)
        directory = os.path.normpath(outputDir + rest)
        if os.path.isdir(directory) or not temporary:
            return Candidate(rpath, directory, emitted)
        # A temporary output is not where the binary will be loaded from, look for the target
        # directory relative to the working directory instead. Without a match the rpath is kept as
        # is, it won't contain any libraries anyway.
        segments = [s for s in rest.split('/') if s and s != os.curdir]
        while segments and segments[0] == os.pardir:
            segments.pop(0)
        if not segments:
            return Candidate(rpath, directory, emitted)
        tail = os.path.join(*segments)
        matches = []
        for depth in range(MAX_GLOB_DEPTH + 1):
            pattern = os.path.join(*(['*'] * depth + [tail]))
            matches.extend(m for m in glob.glob(pattern) if os.path.isdir(m))
        if not matches:
            return Candidate(rpath, directory, emitted)
        directory = os.path.abspath(min(matches, key=lambda m: (len(m), m)))
        return Candidate(rpath, directory, directory)

    def findAggregationDir(self, candidates, outputDir, temporary=False):
        """Return the first _solib_* directory mentioned in any of the candidates."""
        for candidate in candidates:
            segments = candidate.rpath.split('/')
            for index, segment in enumerate(segments):
                if segment.startswith(SOLIB_DIR_PREFIX):
                    return self.resolveRpath('/'.join(segments[:index + 1]) or '/', outputDir, temporary)
        return None

    def _resolveAggregated(self, aggregation, state):
        foundAny = False
        for library, path in walkBreadthFirst(aggregation.directory, state.missing):
            installName = self.installName(path)
            if os.path.isabs(installName):
                continue
            relative = os.path.relpath(path, aggregation.directory).replace(os.sep, '/')
            state.rewrites.append(LoadCommandRewrite(installName, '@rpath/' + relative))
            state.satisfy(library)
            foundAny = True
        if foundAny:
            state.keepRpath(aggregation.emitted)
        return foundAny

    def _resolveShallow(self, candidate, state):
        found = findLibraries(candidate.directory, state.missing)
        if not found:
            return
        if self.platform.canRewriteLoadCommands:
            relocatable = []
            for library, path in found:
                installName = self.installName(path)
                if not os.path.isabs(installName):
                    relocatable.append((library, path, installName))
            if len(found) == 1 and relocatable and rpathPriority(candidate.emitted) != OTHER_RELATIVE:
                # a single library doesn't need an rpath, point the load command straight at it
                library, path, installName = relocatable[0]
                direct = candidate.emitted.rstrip('/') + '/' + os.path.basename(path)
                state.rewrites.append(LoadCommandRewrite(installName, direct))
                state.satisfy(library)
                return
            for library, path, installName in relocatable:
                state.rewrites.append(LoadCommandRewrite(installName, '@rpath/' + os.path.basename(path)))
        for library, path in found:
            state.satisfy(library)
        state.keepRpath(candidate.emitted)


def findLibraries(directory, libraries):
    """Return (library, path) for every library in `libraries` that `directory` contains (non-recursive)."""
    try:
        entries = sorted(os.listdir(directory))
    except OSError:
        return []
    found = []
    seen = set()
    for entry in entries:
        library = libraryName(entry)
        if library in libraries and library not in seen:
            path = os.path.join(directory, entry)
            if os.path.isfile(path):
                seen.add(library)
                found.append((library, path))
    return found


def walkBreadthFirst(directory, libraries):
    """
    Yield (library, path) for the libraries in `libraries` found anywhere below `directory`.

    Shallow matches are found first. The walk stops as soon as `libraries` is empty, so callers that
    remove the yielded libraries from the set cut the search short. A library that is no longer in
    `libraries` when it is found again deeper down is not reported a second time.
    """
    queue = deque([directory])
    visited = set()
    while queue and libraries:
        current = queue.popleft()
        try:
            real = os.path.realpath(current)
            entries = sorted(os.listdir(current))
        except OSError:
            continue
        if real in visited:
            continue
        visited.add(real)
        for entry in entries:
            path = os.path.join(current, entry)
            if os.path.isdir(path):
                queue.append(path)
                continue
            library = libraryName(entry)
            if library in libraries and os.path.isfile(path):
                yield library, path
                if not libraries:
                    return
