"""
Core — Pagination

Standard 1-based page paginator; ``limit`` is capped at MAX_PAGE_SIZE.

@file core/pagination.py
"""

from rest_framework.pagination import PageNumberPagination

from core.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE


class StandardPagination(PageNumberPagination):
    page_size = DEFAULT_PAGE_SIZE
    page_size_query_param = 'limit'
    max_page_size = MAX_PAGE_SIZE
