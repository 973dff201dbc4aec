#!/usr/bin/env python3
"""
Build releases/category-all.json from repositories/**/metadata.json.
Every app keeps its full metadata plus slug, lastUpdated and metadataPath.
Run this after adding/modifying app metadata.

Usage:
    python scripts/build_category_all.py
    python scripts/build_category_all.py --output site/category-all.json
"""

import argparse
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, List, Dict, Any

from catalog_aggregate import UNCATEGORIZED, Category, group_by_category, write_json
from catalog_metadata import REQUIRED_FIELDS, MetadataCollector, load_metadata
from catalog_timestamps import Clock, TimestampSource, git_timestamp_source, iso, now

REPO_ROOT = Path(__file__).resolve().parent.parent

# Apps without a category are grouped under UNCATEGORIZED instead of dropped
CONSOLIDATED_REQUIRED_FIELDS = tuple(f for f in REQUIRED_FIELDS if f != 'category')


@dataclass
class CategoryAllResult:
    categories: List[Category] = field(default_factory=list)
    total_apps: int = 0
    document: Optional[Dict[str, Any]] = None
    ok: bool = True


def read_all_apps(repo_root: Path, repositories_dir: Path, timestamps: TimestampSource,
                  verbose: bool = False) -> List[Dict[str, Any]]:
    """Load every valid app with its slug, lastUpdated and metadataPath"""
    metadata_files = MetadataCollector(repositories_dir, repo_root).discover_all()
    print(f"Found {len(metadata_files)} metadata.json files", file=sys.stderr)

    apps = []
    for metadata_file in metadata_files:
        app = load_metadata(metadata_file, CONSOLIDATED_REQUIRED_FIELDS)
        if app is None:
            continue

        app['slug'] = metadata_file.directory_path
        app['lastUpdated'] = timestamps.resolve(metadata_file.relative_path)
        app['metadataPath'] = metadata_file.relative_path
        apps.append(app)
        if verbose:
            print(f"Added app: {app['name']} (Category: {app.get('category') or UNCATEGORIZED})", file=sys.stderr)

    return apps


def build_category_all(repo_root: Path, repositories_dir: Path, output_file: Path, timestamps: TimestampSource,
                       clock: Clock = time.time, verbose: bool = False) -> CategoryAllResult:
    """Write the consolidated category-all.json document"""
    result = CategoryAllResult()

    apps = read_all_apps(repo_root, repositories_dir, timestamps, verbose=verbose)
    if not apps:
        print("No metadata files found.", file=sys.stderr)
        return result

    result.total_apps = len(apps)
    result.categories = group_by_category(apps, default=UNCATEGORIZED)
    for category in result.categories:
        category.last_updated = category.newest_app_timestamp()

    generated = now(clock)
    result.document = {
        "generated": generated,
        "generatedISO": iso(generated),
        "totalCategories": len(result.categories),
        "totalApps": result.total_apps,
        "categories": [c.to_dict() for c in result.categories],
    }

    try:
        output_file.parent.mkdir(parents=True, exist_ok=True)
        write_json(output_file, result.document)
    except OSError as e:
        print(f"Error: Failed to write {output_file.name}: {e}", file=sys.stderr)
        result.ok = False
        return result

    print(f"Generated {output_file.name} with {len(result.categories)} categories and {result.total_apps} apps",
          file=sys.stderr)
    return result


def print_summary(result: CategoryAllResult) -> None:
    print("", file=sys.stderr)
    print("Summary:", file=sys.stderr)
    print(f"   Total categories: {len(result.categories)}", file=sys.stderr)
    print(f"   Total apps: {result.total_apps}", file=sys.stderr)
    if result.document:
        print(f"   Generated: {result.document['generatedISO']}", file=sys.stderr)
    for category in result.categories:
        print(f"   {category.name}: {category.count} apps (last updated: {iso(category.last_updated)})",
              file=sys.stderr)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description='Generate category-all.json with complete app metadata')
    parser.add_argument('--root', type=Path, default=REPO_ROOT, help='Repository root (git working tree)')
    parser.add_argument('--repositories-dir', type=Path, help='Directory holding metadata.json files')
    parser.add_argument('--output', type=Path, help='Path of the consolidated JSON file')
    parser.add_argument('--verbose', action='store_true', help='Print per-file details')
    args = parser.parse_args(argv)

    root = args.root.resolve()
    repositories_dir = args.repositories_dir or root / 'repositories'
    output_file = args.output or root / 'releases' / 'category-all.json'

    print("Generating category-all.json with complete app metadata...", file=sys.stderr)
    result = build_category_all(
        repo_root=root,
        repositories_dir=repositories_dir,
        output_file=output_file,
        timestamps=git_timestamp_source(root, verbose=args.verbose),
        verbose=args.verbose,
    )

    if not result.ok:
        return 1
    if result.document:
        print_summary(result)
    return 0


if __name__ == '__main__':
    sys.exit(main())
