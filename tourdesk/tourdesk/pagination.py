from rest_framework.pagination import PageNumberPagination


class MessagePagination(PageNumberPagination):
    """Message history pages: 50 by default, ?page_size=N up to 100."""
    page_size = 50
    page_size_query_param = 'page_size'
    max_page_size = 100
