from django.shortcuts import render, redirect
from django.contrib import messages
import logging
from .forms import LoginForm, RegistrationForm, ProfileForm
from .decorators import require_authentication, rate_limit
from backend_api import (
    BackendError,
    SESSION_TOKEN_KEY,
    get_anon_client,
    get_backend_client,
    payload_dict,
)

logger = logging.getLogger(__name__)


def _token_from_login(response):
    """The backend sets the token as a cookie; some deployments return it in the body."""
    token = response.cookies.get('token')
    if token:
        return token
    payload = response.json()
    if isinstance(payload, dict):
        return payload.get('token') or (payload.get('data') or {}).get('token')
    return None


def _store_user(request, user, token):
    request.session[SESSION_TOKEN_KEY] = token
    request.session['user_id'] = user.get('_id') or user.get('id')
    name = f"{user.get('firstName') or ''} {user.get('lastName') or ''}".strip()
    request.session['username'] = name or user.get('email')
    request.session['first_name'] = user.get('firstName') or ''
    request.session['last_name'] = user.get('lastName') or ''
    request.session['email'] = user.get('email')
    request.session['role'] = user.get('role') or 'user'


def register(request):
    """Creates an account on the backend, then sends the user to the login page."""
    if 'user_id' in request.session:
        return redirect('dashboard')

    if request.method == 'POST':
        form = RegistrationForm(request.POST)
        if form.is_valid():
            try:
                response = get_anon_client().post('/users/register', form.to_payload())
            except BackendError as e:
                logger.error(f"Registration request failed: {e}", exc_info=True)
                messages.error(request, "Registration failed. Please try again.")
                return render(request, 'login/register.html', {'form': form})

            if response.ok:
                logger.info(f"Registered user {form.cleaned_data['email']}")
                messages.success(request, "✅ Account created! Please log in.")
                return redirect('login:login_page')

            payload = response.json()
            errors = payload.get('errors') if isinstance(payload, dict) else None
            for error in errors or []:
                messages.error(request, error.get('msg') or error.get('message') or str(error))
            messages.error(request, response.error_message("Registration failed"))
        else:
            messages.error(request, "Please correct the errors below.")
    else:
        form = RegistrationForm()

    return render(request, 'login/register.html', {'form': form})


@rate_limit(max_attempts=5, window_seconds=300)
def login_view(request):
    """Signs in against the backend and keeps its token and profile in the session."""
    if 'user_id' in request.session:
        return redirect('dashboard')

    if request.method == 'POST':
        form = LoginForm(request.POST)
        if form.is_valid():
            email = form.cleaned_data['email']
            try:
                response = get_anon_client().post('/users/login', {
                    'email': email,
                    'password': form.cleaned_data['password'],
                })
                if not response.ok:
                    logger.warning(f"Failed login attempt for {email}")
                    messages.error(
                        request,
                        response.error_message("Login failed. Please check your credentials and try again.")
                    )
                    return render(request, 'login/login.html', {'form': form})

                token = _token_from_login(response)
                me = get_backend_client(token=token).get('/users/me')
            except BackendError as e:
                logger.error(f"Login request failed for {email}: {e}", exc_info=True)
                messages.error(request, "Login failed. Please try again.")
                return render(request, 'login/login.html', {'form': form})

            if not me.ok:
                messages.error(request, "Failed to authenticate after login. Please try again.")
                return render(request, 'login/login.html', {'form': form})

            user = payload_dict(me)
            if isinstance(user.get('user'), dict):
                user = user['user']
            _store_user(request, user, token)
            logger.info(f"User {email} logged in with role {request.session['role']}")
            messages.success(request, f"Welcome back, {request.session['username']}!")

            if request.session['role'] == 'admin':
                return redirect('admin_dashboard')
            return redirect('dashboard')
    else:
        form = LoginForm()

    return render(request, 'login/login.html', {'form': form})


def logout_and_redirect(request):
    """Ends the backend session (best effort) and clears the local one."""
    if request.session.get(SESSION_TOKEN_KEY):
        try:
            get_backend_client(request).post('/users/logout')
        except BackendError as e:
            logger.warning(f"Backend logout failed: {e}")

    user_id = request.session.get('user_id')
    request.session.flush()
    logger.info(f"User {user_id} logged out")
    messages.success(request, "Logged out successfully.")
    return redirect('login:login_page')


@require_authentication
def profile(request):
    """Shows the signed-in user and updates first / last name."""
    if request.method == 'POST':
        form = ProfileForm(request.POST)
        if not form.is_valid():
            messages.error(request, "First name is required.")
            return redirect('login:profile')

        user_id = request.session['user_id']
        payload = {
            'firstName': form.cleaned_data['first_name'],
            'lastName': form.cleaned_data['last_name'],
        }
        if form.cleaned_data['phone']:
            payload['phoneNumber'] = form.cleaned_data['phone']
        try:
            response = get_backend_client(request).put(f'/users/{user_id}', payload)
        except BackendError as e:
            logger.error(f"Profile update failed for user {user_id}: {e}", exc_info=True)
            messages.error(request, "Failed to update profile. Please try again.")
            return redirect('login:profile')

        if response.ok:
            request.session['first_name'] = payload['firstName']
            request.session['last_name'] = payload['lastName']
            request.session['username'] = f"{payload['firstName']} {payload['lastName']}".strip()
            logger.info(f"User {user_id} updated profile")
            messages.success(request, "✅ Profile updated successfully!")
        else:
            messages.error(request, response.error_message("Failed to update profile"))
        return redirect('login:profile')

    form = ProfileForm(initial={
        'first_name': request.session.get('first_name'),
        'last_name': request.session.get('last_name'),
    })
    return render(request, 'login/profile.html', {'form': form})
