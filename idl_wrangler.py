#!/usr/bin/env python3
"""
IdlWrangler

Translates an OMG IDLv4 file (plus the files it #includes) into Rust type declarations:
modules become `pub mod` blocks, structs/enums/unions become serde-derivable Rust types,
typedefs become `pub type` aliases and constants become `pub const` items.

Usage:
    python idl_wrangler.py <idl_file> [-I <dir>]... [--output-file <file>] [--dump-model <file>] [--verbose]

Arguments:
    idl_file            : Path to the root IDL file
    --include-dir, -I   : Directory searched for #include files (repeatable, searched in order, default: .)
    --output-file, -o   : Write the generated Rust here instead of stdout
    --dump-model        : Also write the resolved model as JSON to this file
    --verbose, -v       : Print debug information on stderr

Environment:
    IDLW_INCLUDE_DIRS   : Extra include directories (os.pathsep separated), searched before -I
    IDLW_OUTPUT_FILE    : Overrides --output-file
    IDLW_VERBOSE        : Enables verbose output when set to a non-empty value

Example:
    python idl_wrangler.py dds/DdsDcpsGuid.idl -I dds -o src/guid.rs
"""

import argparse
import os
import sys

from idl_compiler import Configuration, IdlCompiler
from idl_errors import IdlError
from model_debug import write_model_dump


def parse_arguments(argv=None):
    """
    Parse command line arguments.

    Returns:
        argparse.Namespace: Parsed command line arguments
    """
    parser = argparse.ArgumentParser(
        description="Convert IDL type definitions to Rust",
        formatter_class=argparse.RawTextHelpFormatter
    )
    parser.add_argument('idl_file', help='Path to the root IDL file')
    parser.add_argument('--include-dir', '-I', action='append', dest='include_dirs', default=None,
                        help='Directory searched for #include files (repeatable, default: .)')
    parser.add_argument('--output-file', '-o', help='File to write the generated Rust to (default: stdout)')
    parser.add_argument('--dump-model', help='Write the resolved model as JSON to this file')
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable verbose output for debugging')
    return parser.parse_args(argv)


def build_configuration(args) -> Configuration:
    include_dirs = list(args.include_dirs or ['.'])
    env_dirs = os.environ.get('IDLW_INCLUDE_DIRS')
    if env_dirs:
        include_dirs = [d for d in env_dirs.split(os.pathsep) if d] + include_dirs
    verbose = bool(os.environ.get('IDLW_VERBOSE')) or args.verbose
    return Configuration(args.idl_file, include_dirs, verbose)


def main(argv=None) -> int:
    """
    Main entry point of the script.
    """
    args = parse_arguments(argv)
    config = build_configuration(args)
    output_file = os.environ.get('IDLW_OUTPUT_FILE', args.output_file)

    compiler = IdlCompiler(config)
    try:
        result = compiler.compile_idl_file()
    except IdlError as e:
        print(e.format_diagnostic(), file=sys.stderr)
        return 1

    if args.dump_model:
        write_model_dump(result.spec, args.dump_model, config.verbose)

    if output_file:
        directory = os.path.dirname(output_file)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(output_file, 'w', encoding='utf-8') as f:
            f.write(result.output)
        compiler.debug_print(f"Wrote {output_file}")
    else:
        sys.stdout.write(result.output)
    return 0


if __name__ == '__main__':
    sys.exit(main())
