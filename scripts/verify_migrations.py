"""Check that the feature flag tables from migrations/ exist in the configured Supabase project."""
import sys
from pathlib import Path

from postgrest.exceptions import APIError

# Add project root to path
root = str(Path(__file__).resolve().parent.parent)
sys.path.insert(0, root)

from coursehub.services.supabase_client import SupabaseClient

TABLES = [
    ("feature_flag_targets", "01_feature_flags.sql"),
    ("feature_flag_users", "01_feature_flags.sql"),
    ("app_settings", "01_feature_flags.sql"),
    ("users", "platform schema"),
    ("profiles", "platform schema"),
]


def verify_migrations() -> bool:
    print("\nVerifying feature flag schema...\n")

    client = SupabaseClient.get_client()
    all_passed = True

    for table_name, migration_source in TABLES:
        print(f"   Checking table: '{table_name}' ({migration_source})...", end=" ")
        try:
            client.table(table_name).select("*").limit(1).execute()
            print("OK")
        except APIError as e:
            msg = str(e)
            if "does not exist" in msg or "Could not find" in msg:
                print("FAILED - table does not exist")
                all_passed = False
            elif "policy" in msg or "permission" in msg.lower():
                print("OK (protected by RLS)")
            else:
                print(f"WARNING: {e}")

    print("-" * 50)
    if all_passed:
        print("\nDB VERIFICATION PASSED: all feature flag tables detected.")
    else:
        print("\nDB VERIFICATION FAILED: run migrations/01_feature_flags.sql.")
    return all_passed


if __name__ == "__main__":
    sys.exit(0 if verify_migrations() else 1)
