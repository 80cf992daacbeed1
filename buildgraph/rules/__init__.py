# SPDX-License-Identifier: MIT
"""Rule libraries producing build steps for specific toolchains."""
