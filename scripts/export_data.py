#!/usr/bin/env python3
"""
Export vocabulary, statistics, test history and word performance to JSON
"""

import os
import sys
from pathlib import Path

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from vocab_analytics.core.database.database_manager import DatabaseManager  # noqa: E402
from vocab_analytics.export.assembler import ExportAssembler  # noqa: E402


def export_data(db_path: str, output_path: str) -> bool:
    """Write the full export document for a database"""
    try:
        print(f"📖 Exporting data from {db_path}")

        db_manager = DatabaseManager(db_path)
        db_manager.init_database()
        state = db_manager.load_state()

        print(f"  📝 Found {len(state.words)} words")
        print(f"  📈 Found {len(state.test_history)} completed tests")
        print(f"  📊 Found {len(state.word_performance)} word performance records")
        if state.skipped_records:
            print(f"  ⚠️  Skipped {state.skipped_records} unreadable records")

        output_file = Path(output_path)
        output_file.parent.mkdir(parents=True, exist_ok=True)
        output_file.write_text(ExportAssembler().export_json(state), encoding="utf-8")

        print(f"✅ Successfully exported data to {output_path}")
        return True

    except Exception as e:
        print(f"❌ Export failed: {e}")
        return False


def main():
    """Main export function"""
    if len(sys.argv) != 3:
        print("Usage: python export_data.py <database_path> <output_json_path>")
        print("Example: python export_data.py data/vocabulary.db data/backup.json")
        sys.exit(1)

    db_path = sys.argv[1]
    output_path = sys.argv[2]

    if not Path(db_path).exists():
        print(f"❌ Database file not found: {db_path}")
        sys.exit(1)

    if export_data(db_path, output_path):
        print("🎉 Export completed successfully!")
        sys.exit(0)
    else:
        print("💥 Export failed!")
        sys.exit(1)


if __name__ == "__main__":
    main()
