# SPDX-License-Identifier: MIT
"""Build graph construction engine: paths, flags, steps and the build context."""
