"""유틸리티 패키지.

Utility package — pagination helpers and the data-access error taxonomy.
"""
