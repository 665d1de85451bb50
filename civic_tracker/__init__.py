# SPDX-License-Identifier: Apache-2.0

"""
Civic Tracker - civic issue lifecycle and engagement scoring API.
"""

__version__ = "1.0.0"
