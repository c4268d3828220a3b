"""
TrustCircle - trusted-circle invites, two-sided permission grants and
access checks for private family content.
"""

__version__ = "1.0.0"
