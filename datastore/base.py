import abc

FEATURED_LIMIT = 6
SIMILAR_LIMIT = 3
SIMILAR_PRICE_DELTA = 100_000
TASK_PAGE_SIZE = 50


def is_similar(candidate, source, delta=SIMILAR_PRICE_DELTA):
    """Same type, not the source itself, price within a fixed absolute delta."""
    return (
        candidate.id != source.id
        and candidate.property_type == source.property_type
        and abs((candidate.price or 0) - (source.price or 0)) <= delta
    )


def task_sort_key(task):
    # due date ascending, undated tasks last
    return (task.due_date is None, task.due_date or 0, task.id)


class PropertyStore(abc.ABC):
    """
    Data access contract shared by the in-memory and the remote backend.

    All methods are coroutines. Read methods raise NotFound / BackendFailure;
    save / unsave / delete_* report failure through their return value.
    """

    # Properties

    @abc.abstractmethod
    async def list_all(self):
        ...

    @abc.abstractmethod
    async def get_by_id(self, property_id):
        ...

    @abc.abstractmethod
    async def search(self, filters):
        ...

    @abc.abstractmethod
    async def list_featured(self, limit=FEATURED_LIMIT):
        ...

    @abc.abstractmethod
    async def list_similar(self, property_id, limit=SIMILAR_LIMIT):
        ...

    # Saved properties

    @abc.abstractmethod
    async def list_saved_ids(self):
        ...

    async def is_saved(self, property_id):
        return property_id in await self.list_saved_ids()

    @abc.abstractmethod
    async def save(self, property_id):
        ...

    @abc.abstractmethod
    async def unsave(self, property_id):
        ...

    # Saved searches

    @abc.abstractmethod
    async def list_saved_searches(self):
        ...

    @abc.abstractmethod
    async def save_search(self, name, filters, result_count=0):
        ...

    @abc.abstractmethod
    async def delete_search(self, search_id):
        ...

    # Tasks

    @abc.abstractmethod
    async def list_tasks(self):
        ...

    @abc.abstractmethod
    async def get_task(self, task_id):
        ...

    @abc.abstractmethod
    async def create_task(self, fields):
        ...

    @abc.abstractmethod
    async def update_task(self, task_id, fields):
        ...

    @abc.abstractmethod
    async def delete_task(self, task_id):
        ...

    async def list_tasks_for_property(self, property_id):
        return [t for t in await self.list_tasks() if t.property_id == property_id]
