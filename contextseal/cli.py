"""
contextseal CLI - Command Line Interface
========================================

Provision the master key, store and retrieve documents from the shell.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

import yaml
from dotenv import load_dotenv

from . import __version__
from .config import configure
from .context import Context, normalize_context, parse_context_pairs
from .errors import ContextAssertionError, ContextSealError
from .keys import LocalMasterKeyProvider
from .router import BackendRouter, create_document_store


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point"""
    parser = argparse.ArgumentParser(
        prog="contextseal",
        description="contextseal - documents sealed with an encryption context",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"contextseal {__version__}",
    )
    parser.add_argument("--alias", help="Master key alias (default: $CS_KEY_ALIAS or alias/contextseal)")
    parser.add_argument("--keys-dir", help="Directory holding master keys")
    parser.add_argument("--store-dir", help="Directory holding documents")
    parser.add_argument("--debug", action="store_true", help="Verbose logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("create-key", help="Create the master key for the alias")

    put_parser = subparsers.add_parser("put", help="Encrypt and store a file")
    put_parser.add_argument("file", help="File to store")
    put_parser.add_argument(
        "--context", "-c",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Encryption context entry (repeatable)"
    )
    put_parser.add_argument("--context-file", help="JSON or YAML file with the encryption context")

    get_parser = subparsers.add_parser("get", help="Retrieve and decrypt a document")
    get_parser.add_argument("document_id", help="Document id printed by 'put'")
    get_parser.add_argument(
        "--expect-key", "-k",
        action="append",
        default=[],
        metavar="KEY",
        help="Key that must be in the encryption context (repeatable)"
    )
    get_parser.add_argument(
        "--expect", "-e",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Pair that must be in the encryption context (repeatable)"
    )
    get_parser.add_argument("--output", "-o", help="Write plaintext here instead of stdout")

    find_parser = subparsers.add_parser("find", help="List documents by indexed context")
    find_parser.add_argument("key", help="Context key")
    find_parser.add_argument("--value", help="Context value")

    subparsers.add_parser("info", help="Show configuration and master key info")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    load_dotenv()

    overrides = {"store_backend": "file"}
    if args.alias:
        overrides["key_alias"] = args.alias
    if args.keys_dir:
        overrides["keys_dir"] = args.keys_dir
    if args.store_dir:
        overrides["store_dir"] = args.store_dir
    if args.debug:
        overrides["debug"] = True

    try:
        config = configure(**overrides)
        logging.basicConfig(
            level=logging.DEBUG if config.debug else logging.WARNING,
            format="%(asctime)s %(name)s %(levelname)s %(message)s",
        )

        if args.command == "create-key":
            return cmd_create_key(config)
        elif args.command == "put":
            return cmd_put(config, args.file, args.context, args.context_file)
        elif args.command == "get":
            return cmd_get(config, args.document_id, args.expect_key, args.expect, args.output)
        elif args.command == "find":
            return cmd_find(config, args.key, args.value)
        elif args.command == "info":
            return cmd_info(config)
    except ContextAssertionError as e:
        print(f"❌ Context assertion failed: {e}", file=sys.stderr)
        print(f"   Authenticated context: {json.dumps(e.actual_context, sort_keys=True)}", file=sys.stderr)
        return 1
    except ContextSealError as e:
        print(f"❌ {type(e).__name__}: {e}", file=sys.stderr)
        return 1
    except (OSError, ValueError, yaml.YAMLError) as e:
        print(f"❌ Error: {e}", file=sys.stderr)
        return 1

    return 0


def load_context_file(path: str) -> Context:
    """Read an encryption context from a .json, .yaml or .yml file"""
    context_file = Path(path)
    with open(context_file, 'r') as f:
        if context_file.suffix == ".json":
            data = json.load(f)
        else:
            data = yaml.safe_load(f)
    return normalize_context(data or {})


def cmd_create_key(config) -> int:
    """Provision the master key for the configured alias"""
    provider = LocalMasterKeyProvider(config.key_alias, config.keys_dir)
    metadata = provider.create_key()
    print(f"✓ Created master key {metadata['key_id']}")
    print(f"  Alias:      {metadata['alias']}")
    print(f"  Created at: {metadata['created_at']}")
    return 0


def cmd_put(config, file: str, pairs: List[str], context_file: Optional[str]) -> int:
    """Encrypt a file and print its document id"""
    context = load_context_file(context_file) if context_file else {}
    context.update(parse_context_pairs(pairs))

    store = BackendRouter(config).build()
    document_id = store.store(Path(file).read_bytes(), context)
    print(document_id)
    return 0


def cmd_get(config, document_id: str, expect_keys: List[str], expect: List[str], output: Optional[str]) -> int:
    """Decrypt a document after checking its encryption context"""
    store = BackendRouter(config, create_key=False).build()
    bundle = store.retrieve(
        document_id,
        expected_context_keys=set(expect_keys),
        expected_context=parse_context_pairs(expect),
    )

    if output:
        Path(output).write_bytes(bundle.plaintext)
        print(f"✓ Wrote {len(bundle.plaintext)} bytes to {output}", file=sys.stderr)
    else:
        sys.stdout.buffer.write(bundle.plaintext)
        sys.stdout.flush()
    print(f"  Context: {json.dumps(dict(bundle.context), sort_keys=True)}", file=sys.stderr)
    return 0


def cmd_find(config, key: str, value: Optional[str]) -> int:
    """List document ids by their indexed context"""
    for document_id in create_document_store(config).find(key, value):
        print(document_id)
    return 0


def cmd_info(config) -> int:
    """Show configuration and master key info"""
    print(f"contextseal v{__version__}")
    print("=" * 50)

    print(f"\nConfiguration:")
    print(f"  Key Alias:      {config.key_alias}")
    print(f"  Keys Dir:       {config.keys_dir}")
    print(f"  Store Backend:  {config.store_backend}")
    print(f"  Store Dir:      {config.store_dir}")
    print(f"  Debug:          {config.debug}")

    provider = LocalMasterKeyProvider(config.key_alias, config.keys_dir)
    print(f"\nMaster Key:")
    if provider.exists():
        metadata = provider.describe()
        print(f"  Key ID:         {metadata['key_id']}")
        print(f"  Created At:     {metadata['created_at']}")
    else:
        print(f"  (not created; run 'contextseal create-key')")

    return 0


if __name__ == "__main__":
    sys.exit(main())
