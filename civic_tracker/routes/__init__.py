# SPDX-License-Identifier: Apache-2.0

"""
HTTP route blueprints for authentication, issues, comments and users.
"""
