from portal.views.auth_handlers import (
    auth_backdoor as auth_backdoor,
)
from portal.views.auth_handlers import (
    email_auth as email_auth,
)
from portal.views.auth_handlers import (
    email_callback as email_callback,
)
from portal.views.auth_handlers import (
    github_callback as github_callback,
)
from portal.views.auth_handlers import (
    github_start as github_start,
)
from portal.views.auth_handlers import (
    google_callback as google_callback,
)
from portal.views.auth_handlers import (
    google_start as google_start,
)
from portal.views.auth_handlers import (
    sign_in_page as sign_in_page,
)
from portal.views.auth_handlers import (
    sign_out as sign_out,
)
from portal.views.billing_handlers import (
    billing_portal as billing_portal,
)
from portal.views.billing_handlers import (
    cancel as cancel,
)
from portal.views.billing_handlers import (
    donate as donate,
)
from portal.views.billing_handlers import (
    manage_page as manage_page,
)
from portal.views.billing_handlers import (
    subscribe as subscribe,
)
from portal.views.handlers import health as health
from portal.views.handlers import index_page as index_page
from portal.views.handlers import thank_you_page as thank_you_page
from portal.views.webhook_handlers import webhook as webhook
