def audit_actions(uow) -> list:
    """Actions of every audit event written through a mocked unit of work"""
    return [call.args[0].action for call in uow.audit_events.create.call_args_list]


def audit_events(uow, action: str) -> list:
    return [
        call.args[0]
        for call in uow.audit_events.create.call_args_list
        if call.args[0].action == action
    ]
