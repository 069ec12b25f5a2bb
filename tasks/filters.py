def filter_tasks(tasks, status=None, property_id=None, search=None):
    """Status / property / free-text (name or description) filters, combined with AND."""
    needle = (search or "").strip().lower()
    result = []
    for task in tasks:
        if status and task.status != status:
            continue
        if property_id is not None and task.property_id != property_id:
            continue
        if needle and needle not in task.name.lower() and needle not in (task.description or "").lower():
            continue
        result.append(task)
    return result
