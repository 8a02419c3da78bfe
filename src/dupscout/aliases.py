from dupscout.core.models import HashStrategy, VerificationMode

HASH_METHOD_ALIASES = {
    "smart": HashStrategy.SMART,
    "full": HashStrategy.FULL,
    "quick": HashStrategy.QUICK,
    "streaming": HashStrategy.STREAMING,
    "sampling": HashStrategy.SAMPLING,
}

HASH_METHOD_CHOICES = list(HASH_METHOD_ALIASES.keys())

HASH_METHOD_HELP_TEXT = (
    "Fingerprint strategy:\n"
    "  smart      : full for small files, sampling for medium, quick for huge (default)\n"
    "  full       : SHA-256 over the whole file (exact)\n"
    "  streaming  : same digest as full, bounded memory\n"
    "  quick      : first and last 8 KB only (prefilter)\n"
    "  sampling   : evenly spaced windows plus file size (prefilter)\n"
)

MODE_ALIASES = {
    "quick": VerificationMode.QUICK_THEN_FULL,
    "quick-then-full": VerificationMode.QUICK_THEN_FULL,
    "full": VerificationMode.FULL_ONLY,
    "full-only": VerificationMode.FULL_ONLY,
}

MODE_CHOICES = list(MODE_ALIASES.keys())

MODE_HELP_TEXT = (
    "Verification mode:\n"
    "  quick : Size → Quick Hash → Full Hash (default)\n"
    "  full  : Size → Full Hash\n"
    "Both modes confirm every group with a full content hash.\n"
)

EPILOG_TEXT = """
Examples:
  Find duplicates in Downloads
  %(prog)s find ~/Downloads

  Only large photos, skipping a cache directory
  %(prog)s find ~/Pictures -m 500KB -M 50MB -x .jpg .png -e ~/Pictures/.cache

  Build an inventory, hash it with 8 workers and store verified duplicates
  %(prog)s --db photos.db scan ~/Pictures
  %(prog)s --db photos.db update-hashes --threads 8 --batch-size 100
  %(prog)s --db photos.db duplicates

  Preview how many records smart selection would skip
  %(prog)s --db photos.db update-hashes --stats

  Extract image metadata for stored records
  %(prog)s --db photos.db extract-metadata --skip-existing
"""
