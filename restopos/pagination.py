from rest_framework.pagination import PageNumberPagination


class PagePagination(PageNumberPagination):
    """?page=N&limit=M paging used by the polling order and stock history views"""

    page_size_query_param = 'limit'
    max_page_size = 200
