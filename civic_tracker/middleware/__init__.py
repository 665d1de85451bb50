# SPDX-License-Identifier: Apache-2.0

"""
Middleware package for request processing.

This package contains the authentication, request validation and error
handling components of the Civic Tracker API.
"""
