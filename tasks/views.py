import logging

from asgiref.sync import async_to_sync
from rest_framework import viewsets, permissions, response, status
from rest_framework.exceptions import NotFound, ValidationError

from datastore import errors
from datastore.records import TaskStatus
from datastore.registry import get_store
from realestate_browser.exceptions import BackendUnavailable
from .filters import filter_tasks
from .serializers import TaskSerializer

logger = logging.getLogger(__name__)


class TaskViewSet(viewsets.ViewSet):
    """
    Task manager.
    - GET    /api/tasks/            list, ordered by due date (?status=, ?property=, ?search=)
    - POST   /api/tasks/            create
    - GET    /api/tasks/{id}/       retrieve
    - PUT    /api/tasks/{id}/       update
    - PATCH  /api/tasks/{id}/       partial update
    - DELETE /api/tasks/{id}/       delete
    """
    permission_classes = [permissions.AllowAny]
    lookup_value_regex = r"\d+"

    def get_store(self):
        return get_store()

    def _get_task(self, pk):
        try:
            return async_to_sync(self.get_store().get_task)(int(pk))
        except errors.NotFound:
            raise NotFound(detail="Task not found.")
        except errors.DataStoreError as e:
            logger.error("Error fetching task %s: %s", pk, e)
            raise BackendUnavailable("Failed to load task. Please try again.")

    def list(self, request):
        task_status = request.query_params.get("status") or None
        if task_status and task_status not in TaskStatus.values:
            raise ValidationError({"status": f"Must be one of: {', '.join(TaskStatus.values)}."})
        property_id = request.query_params.get("property") or None
        if property_id is not None:
            if not property_id.isdigit():
                raise ValidationError({"property": "Must be a property id."})
            property_id = int(property_id)

        store = self.get_store()
        try:
            if property_id is not None:
                tasks = async_to_sync(store.list_tasks_for_property)(property_id)
            else:
                tasks = async_to_sync(store.list_tasks)()
        except errors.DataStoreError as e:
            logger.error("Error fetching tasks: %s", e)
            raise BackendUnavailable("Failed to load tasks. Please try again.")

        tasks = filter_tasks(tasks, status=task_status, property_id=property_id,
                             search=request.query_params.get("search"))
        return response.Response(TaskSerializer(tasks, many=True).data)

    def retrieve(self, request, pk=None):
        return response.Response(TaskSerializer(self._get_task(pk)).data)

    def create(self, request):
        serializer = TaskSerializer(data=request.data, context={"store": self.get_store()})
        serializer.is_valid(raise_exception=True)
        try:
            task = serializer.save()
        except errors.DataStoreError as e:
            logger.error("Error creating task: %s", e)
            raise BackendUnavailable("Failed to create task. Please try again.")
        logger.info("Task created id=%s property_id=%s status=%s", task.id, task.property_id, task.status)
        return response.Response(serializer.data, status=status.HTTP_201_CREATED)

    def update(self, request, pk=None, partial=False):
        task = self._get_task(pk)
        serializer = TaskSerializer(task, data=request.data, partial=partial, context={"store": self.get_store()})
        serializer.is_valid(raise_exception=True)
        try:
            task = serializer.save()
        except errors.NotFound:
            raise NotFound(detail="Task not found.")
        except errors.DataStoreError as e:
            logger.error("Error updating task %s: %s", pk, e)
            raise BackendUnavailable("Failed to update task. Please try again.")
        logger.info("Task updated id=%s status=%s", task.id, task.status)
        return response.Response(serializer.data)

    def partial_update(self, request, pk=None):
        return self.update(request, pk=pk, partial=True)

    def destroy(self, request, pk=None):
        self._get_task(pk)
        try:
            ok = async_to_sync(self.get_store().delete_task)(int(pk))
        except errors.DataStoreError as e:
            logger.error("Error deleting task %s: %s", pk, e)
            ok = False
        if not ok:
            raise BackendUnavailable("Failed to delete task. Please try again.")
        logger.info("Task deleted id=%s", pk)
        return response.Response(status=status.HTTP_204_NO_CONTENT)
