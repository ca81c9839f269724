from typing import Any, Dict, Generic, List, Sequence, TypeVar

T = TypeVar('T')


class Paginator(Generic[T]):
    """
    Класс для пагинации списков элементов.
    """

    def __init__(self, items: Sequence[T], page_size: int = 5):
        """
        Args:
            items: Элементы для пагинации (любая последовательность)
            page_size: Количество элементов на странице
        """
        if page_size < 1:
            raise ValueError("page_size must be positive")

        self.items = list(items)
        self.page_size = page_size
        self.total_pages = (len(self.items) + page_size - 1) // page_size

    def clamp(self, page: int) -> int:
        """Приводит номер страницы к допустимому диапазону."""
        if self.total_pages == 0:
            return 0
        return max(0, min(page, self.total_pages - 1))

    def get_page(self, page: int) -> List[T]:
        """
        Получить элементы для указанной страницы.

        Args:
            page: Номер страницы (начиная с 0)

        Returns:
            List[T]: Список элементов на странице

        Raises:
            ValueError: Если страницы с таким номером нет
        """
        if page < 0 or (page >= self.total_pages and self.total_pages > 0):
            raise ValueError(f"Page {page} is out of range (0-{self.total_pages - 1})")

        start_idx = page * self.page_size
        return self.items[start_idx:start_idx + self.page_size]

    def has_prev(self, page: int) -> bool:
        return page > 0

    def has_next(self, page: int) -> bool:
        return page < self.total_pages - 1

    def get_page_info(self, page: int) -> Dict[str, Any]:
        """
        Возвращает информацию о текущей странице (номер, общее количество и т.д.).
        """
        return {
            "current_page": page + 1,
            "total_pages": max(self.total_pages, 1),
            "has_prev": self.has_prev(page),
            "has_next": self.has_next(page),
            "page_size": self.page_size,
            "total_items": len(self.items)
        }
