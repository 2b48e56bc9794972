def session_user(request):
    """Expose the signed-in backend user to every template."""
    if not getattr(request, 'user_authenticated', False):
        return {'session_user': None, 'is_admin': False, 'is_staff_user': False}

    session = request.session
    return {
        'session_user': {
            'id': session.get('user_id'),
            'username': request.username,
            'email': session.get('email'),
            'role': request.role,
        },
        'is_admin': request.is_admin,
        'is_staff_user': request.is_staff_user,
    }
