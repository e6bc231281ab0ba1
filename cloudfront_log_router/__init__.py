"""
CloudFront access log router
Ships CloudFront access logs from S3 into CloudWatch Logs
"""

__version__ = "1.0.0"
