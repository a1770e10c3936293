from django.contrib.auth import views as auth_views
from django.urls import path

from . import views, dashboard_views

urlpatterns = [
    # Auth & Dashboard
    path('',                views.dashboard,        name='dashboard'),
    path('login/',          views.login_view,       name='login'),
    path('logout/',         views.logout_view,      name='logout'),
    path('register/',       views.register_company, name='register_company'),
    path('pending/',        views.pending_approval, name='pending_approval'),
    path('password-reset/', auth_views.PasswordResetView.as_view(
        template_name='registration/password_reset_form.html',
        email_template_name='registration/password_reset_email.txt',
    ), name='password_reset'),
    path('password-reset/done/', auth_views.PasswordResetDoneView.as_view(
        template_name='registration/password_reset_done.html'
    ), name='password_reset_done'),
    path('reset/<uidb64>/<token>/', auth_views.PasswordResetConfirmView.as_view(
        template_name='registration/password_reset_confirm.html'
    ), name='password_reset_confirm'),
    path('reset/done/', auth_views.PasswordResetCompleteView.as_view(
        template_name='registration/password_reset_complete.html'
    ), name='password_reset_complete'),

    # Header links
    path('notifications/',  views.notifications,    name='notifications'),

    # Cages
    path('cages/',                  views.cage_list,   name='cage_list'),
    path('cages/new/',              views.cage_create, name='cage_create'),
    path('cages/<int:pk>/',         views.cage_detail, name='cage_detail'),
    path('cages/<int:pk>/edit/',    views.cage_update, name='cage_update'),
    path('cages/<int:pk>/delete/',  views.cage_delete, name='cage_delete'),

    # Stocking & approvals
    path('stocking/new/',   views.stocking_create,  name='stocking_create'),
    path('topups/new/',     views.topup_create,     name='topup_create'),
    path('approvals/',      views.approvals,        name='approvals'),
    path('approvals/<str:kind>/<int:pk>/<str:decision>/', views.approval_decide, name='approval_decide'),

    # Production records
    path('records/daily/',          views.daily_entry,      name='daily_entry'),
    path('records/daily/upload/',   views.daily_upload,     name='daily_upload'),
    path('records/biweekly/',       views.biweekly_entry,   name='biweekly_entry'),
    path('records/export/',         views.export_records,   name='export_records'),
    path('harvests/new/',           views.harvest_entry,    name='harvest_entry'),
    path('harvests/<int:pk>/sampling/', views.harvest_sampling, name='harvest_sampling'),

    # Administration
    path('users/',                      views.user_list,            name='user_list'),
    path('users/new/',                  views.user_create,          name='user_create'),
    path('users/<int:pk>/edit/',        views.user_update,          name='user_update'),
    path('users/<int:pk>/toggle/',      views.user_toggle_active,   name='user_toggle_active'),
    path('company/',                    views.company_settings,     name='company_settings'),
    path('company-registrations/',      views.company_registrations, name='company_registrations'),
    path('company-registrations/<int:pk>/<str:decision>/', views.company_registration_decide,
         name='company_registration_decide'),
    path('audit-logs/',     views.AuditLogListView.as_view(), name='audit_logs'),

    # Dashboard JSON
    path('dashboard/kpis/',      dashboard_views.farm_kpis,     name='farm_kpis'),
    path('dashboard/analytics/', dashboard_views.analytics,     name='analytics'),
    path('dashboard/activity/',  dashboard_views.farm_activity, name='farm_activity'),
]
