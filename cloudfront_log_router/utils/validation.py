"""
Shared helpers for bucket names, object keys and sizes
"""

import re

# CloudFront reports the logging bucket as its S3 hostname, e.g. bucket-name.s3.amazonaws.com
S3_HOSTNAME_SUFFIX = re.compile(r'\.s3(?:[.-][a-z0-9-]+)?\.amazonaws\.com$')


def strip_bucket_suffix(bucket: str) -> str:
    """
    Strip the S3 hostname suffix from a CloudFront logging bucket.

    Args:
        bucket: Bucket as reported by CloudFront

    Returns:
        Plain bucket name
    """
    return S3_HOSTNAME_SUFFIX.sub('', bucket)


def get_log_group_name(object_key: str) -> str:
    """
    Derive a log group name from an S3 object key.

    The group is the key without its filename, always prefixed with a slash:
    skpr/cluster/project/dev/E38J4Y0L8GXH9D.2020-06-08-07.d51ccc94.gz -> /skpr/cluster/project/dev
    """
    parts = object_key.split('/')
    group = '/'.join(parts[:-1])
    if not group.startswith('/'):
        group = f"/{group}"
    return group


def byte_count_binary(size: int) -> str:
    """Format a byte count using binary (IEC) units."""
    unit = 1024
    if size < unit:
        return f"{size} B"
    div, exp = unit, 0
    n = size // unit
    while n >= unit:
        div *= unit
        exp += 1
        n //= unit
    return f"{size / div:.1f} {'KMGTPE'[exp]}iB"
