"""
Tests for Paginator.
"""

import pytest

from utils.paginator import Paginator


class TestPaginator:
    """Tests for Paginator."""

    def test_pages(self):
        paginator = Paginator(range(12), page_size=5)

        assert paginator.total_pages == 3
        assert paginator.get_page(0) == [0, 1, 2, 3, 4]
        assert paginator.get_page(2) == [10, 11]

    def test_page_info(self):
        info = Paginator(list(range(12)), page_size=5).get_page_info(1)

        assert info["current_page"] == 2
        assert info["total_pages"] == 3
        assert info["has_prev"] is True
        assert info["has_next"] is True
        assert info["total_items"] == 12

    def test_empty_list(self):
        paginator = Paginator([], page_size=5)

        assert paginator.get_page(0) == []
        assert paginator.clamp(3) == 0
        assert paginator.get_page_info(0)["total_pages"] == 1
        assert paginator.has_next(0) is False

    def test_out_of_range(self):
        paginator = Paginator([1, 2, 3], page_size=2)
        with pytest.raises(ValueError):
            paginator.get_page(2)
        with pytest.raises(ValueError):
            paginator.get_page(-1)

    def test_clamp(self):
        paginator = Paginator(range(7), page_size=3)
        assert paginator.clamp(-5) == 0
        assert paginator.clamp(10) == 2
        assert paginator.clamp(1) == 1

    def test_page_size_must_be_positive(self):
        with pytest.raises(ValueError):
            Paginator([1], page_size=0)
