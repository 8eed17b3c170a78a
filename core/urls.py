"""
URL configuration for the Core app.
"""

from django.urls import path

from . import views
from . import admin_views
from . import agent_views
from . import api_views
from . import auth_views
from . import catalog_views
from . import checkout_views
from . import notification_views
from . import storefront_views
from . import support_views
from . import user_views
from . import wallet_views

app_name = 'core'

urlpatterns = [
    # Health check
    path('health/', views.health_check, name='health_check'),

    # =========================================================================
    # AUTHENTICATION
    # =========================================================================

    path('api/auth/register', auth_views.RegisterView.as_view(), name='register'),
    path('api/auth/login', auth_views.LoginView.as_view(), name='login'),
    path('api/auth/logout', auth_views.LogoutView.as_view(), name='logout'),
    path('api/auth/me', auth_views.MeView.as_view(), name='me'),

    # =========================================================================
    # PRODUCTS
    # =========================================================================

    path('api/data-bundles', catalog_views.DataBundleListView.as_view(), name='data_bundles'),
    path('api/data-bundles/<int:pk>', catalog_views.DataBundleDetailView.as_view(), name='data_bundle_detail'),
    path('api/result-checkers/stock', catalog_views.ResultCheckerStockView.as_view(), name='result_checker_stock'),
    path('api/result-checkers/info/<str:checker_type>/<int:year>',
         catalog_views.ResultCheckerInfoView.as_view(), name='result_checker_info'),

    # =========================================================================
    # AGENTS
    # =========================================================================

    path('api/agent/register', agent_views.AgentRegisterView.as_view(), name='agent_register'),
    path('api/agent/upgrade', agent_views.AgentUpgradeView.as_view(), name='agent_upgrade'),
    path('api/agent/check-slug', agent_views.CheckSlugView.as_view(), name='agent_check_slug'),
    path('api/agent/profile', agent_views.AgentProfileView.as_view(), name='agent_profile'),
    path('api/agent/stats', agent_views.AgentStatsView.as_view(), name='agent_stats'),
    path('api/agent/transactions', agent_views.AgentTransactionsView.as_view(), name='agent_transactions'),
    path('api/agent/transactions/recent', agent_views.AgentRecentTransactionsView.as_view(),
         name='agent_recent_transactions'),
    path('api/agent/withdrawals', agent_views.AgentWithdrawalsView.as_view(), name='agent_withdrawals'),
    path('api/agent/storefront', agent_views.AgentStorefrontView.as_view(), name='agent_storefront'),
    path('api/agent/pricing', agent_views.AgentPricingView.as_view(), name='agent_pricing'),

    # Storefront
    path('api/store/<slug:slug>', storefront_views.StorefrontView.as_view(), name='storefront'),
    path('api/store/<slug:slug>/register', storefront_views.StorefrontRegisterView.as_view(),
         name='storefront_register'),

    # =========================================================================
    # CHECKOUT
    # =========================================================================

    path('api/checkout/initialize', checkout_views.CheckoutInitializeView.as_view(), name='checkout_initialize'),
    path('api/transactions/verify/<str:reference>', checkout_views.TransactionVerifyView.as_view(),
         name='transaction_verify'),
    path('api/transactions/<str:reference>/receipt.pdf', checkout_views.ReceiptPdfView.as_view(),
         name='transaction_receipt'),
    path('api/paystack/verify', checkout_views.PaystackVerifyView.as_view(), name='paystack_verify'),
    path('api/paystack/webhook', checkout_views.PaystackWebhookView.as_view(), name='paystack_webhook'),
    path('api/paystack/config', checkout_views.PaystackConfigView.as_view(), name='paystack_config'),

    # =========================================================================
    # USER
    # =========================================================================

    path('api/transactions', user_views.UserTransactionsView.as_view(), name='user_transactions'),
    path('api/user/stats', user_views.UserStatsView.as_view(), name='user_stats'),
    path('api/user/bulk-upload', user_views.BulkUploadView.as_view(), name='bulk_upload'),
    path('api/track-order', catalog_views.TrackOrderView.as_view(), name='track_order'),
    path('api/rankings/customers', catalog_views.CustomerRankingsView.as_view(), name='customer_rankings'),
    path('api/announcements/active', catalog_views.ActiveAnnouncementsView.as_view(), name='active_announcements'),
    path('api/break-settings', catalog_views.BreakSettingsView.as_view(), name='break_settings'),

    # Wallet
    path('api/wallet/stats', wallet_views.WalletStatsView.as_view(), name='wallet_stats'),
    path('api/wallet/topup/initialize', wallet_views.WalletTopupInitializeView.as_view(), name='wallet_topup'),
    path('api/wallet/topup/verify/<str:reference>', wallet_views.WalletTopupVerifyView.as_view(),
         name='wallet_topup_verify'),
    path('api/wallet/pay', wallet_views.WalletPayView.as_view(), name='wallet_pay'),

    # =========================================================================
    # API KEYS
    # =========================================================================

    path('api/keys', api_views.ApiKeysView.as_view(), name='api_keys'),
    path('api/keys/<int:pk>', api_views.ApiKeyDetailView.as_view(), name='api_key_detail'),
    path('api/v1/orders', api_views.ExternalOrderView.as_view(), name='external_orders'),
    path('api/v1/orders/<str:reference>', api_views.ExternalOrderStatusView.as_view(), name='external_order_status'),
    path('api/v1/balance', api_views.ExternalBalanceView.as_view(), name='external_balance'),

    # =========================================================================
    # SUPPORT
    # =========================================================================

    path('api/support/chat/create', support_views.CreateChatView.as_view(), name='support_chat_create'),
    path('api/support/chats', support_views.ChatListView.as_view(), name='support_chats'),
    path('api/support/chat/<int:pk>', support_views.ChatDetailView.as_view(), name='support_chat'),
    path('api/support/chat/<int:pk>/message', support_views.ChatMessageView.as_view(), name='support_chat_message'),
    path('api/support/chat/<int:pk>/close', support_views.ChatCloseView.as_view(), name='support_chat_close'),
    path('api/support/message/<int:pk>/read', support_views.MessageReadView.as_view(), name='support_message_read'),
    path('api/support/unread-count', support_views.UnreadCountView.as_view(), name='support_unread_count'),
    path('api/support/admin/unread-count', support_views.AdminUnreadCountView.as_view(),
         name='support_admin_unread_count'),

    # =========================================================================
    # NOTIFICATIONS
    # =========================================================================

    path('api/notifications', notification_views.NotificationListView.as_view(), name='notifications'),
    path('api/notifications/<int:pk>/read', notification_views.MarkAsReadView.as_view(), name='mark_notification_read'),
    path('api/notifications/mark-all-read', notification_views.MarkAllReadView.as_view(), name='mark_all_read'),
    path('api/notifications/unread-count', notification_views.UnreadCountView.as_view(), name='unread_count'),
    path('api/notifications/push/register', notification_views.RegisterPushView.as_view(), name='register_push'),
    path('api/notifications/push/unregister', notification_views.UnregisterPushView.as_view(),
         name='unregister_push'),
    path('api/notifications/preferences', notification_views.NotificationPreferencesView.as_view(),
         name='notification_preferences'),

    # =========================================================================
    # ADMIN
    # =========================================================================

    path('api/admin/stats', admin_views.AdminStatsView.as_view(), name='admin_stats'),
    path('api/admin/rankings/customers', admin_views.AdminRankingsView.as_view(), name='admin_rankings'),

    # Transactions
    path('api/admin/transactions', admin_views.AdminTransactionsView.as_view(), name='admin_transactions'),
    path('api/admin/transactions/recent', admin_views.AdminRecentTransactionsView.as_view(),
         name='admin_recent_transactions'),
    path('api/admin/transactions/export', admin_views.AdminTransactionExportView.as_view(),
         name='admin_export_transactions'),
    path('api/admin/transactions/<int:pk>/delivery-status', admin_views.AdminDeliveryStatusView.as_view(),
         name='admin_delivery_status'),
    path('api/admin/transactions/<int:pk>/dispatch', admin_views.AdminDispatchView.as_view(), name='admin_dispatch'),

    # Agents
    path('api/admin/agents', admin_views.AdminAgentsView.as_view(), name='admin_agents'),
    path('api/admin/agents/<int:pk>', admin_views.AdminAgentDetailView.as_view(), name='admin_agent_detail'),
    path('api/admin/agents/<int:pk>/approve', admin_views.AdminAgentApproveView.as_view(), name='admin_agent_approve'),

    # Users
    path('api/admin/users', admin_views.AdminUsersView.as_view(), name='admin_users'),
    path('api/admin/users/delete-inactive', admin_views.AdminDeleteInactiveUsersView.as_view(),
         name='admin_delete_inactive_users'),
    path('api/admin/users/<int:pk>', admin_views.AdminUserDetailView.as_view(), name='admin_user_detail'),
    path('api/admin/users/<int:pk>/role', admin_views.AdminUserRoleView.as_view(), name='admin_user_role'),
    path('api/admin/users/<int:pk>/credentials', admin_views.AdminUserCredentialsView.as_view(),
         name='admin_user_credentials'),
    path('api/admin/users/<int:pk>/wallet', admin_views.AdminWalletAdjustView.as_view(), name='admin_wallet_adjust'),

    # Announcements
    path('api/admin/announcements', admin_views.AdminAnnouncementsView.as_view(), name='admin_announcements'),
    path('api/admin/announcements/<int:pk>', admin_views.AdminAnnouncementDetailView.as_view(),
         name='admin_announcement_detail'),

    # Withdrawals
    path('api/admin/withdrawals', admin_views.AdminWithdrawalsView.as_view(), name='admin_withdrawals'),
    path('api/admin/withdrawals/<int:pk>/approve', admin_views.AdminWithdrawalApproveView.as_view(),
         name='admin_withdrawal_approve'),
    path('api/admin/withdrawals/<int:pk>/reject', admin_views.AdminWithdrawalRejectView.as_view(),
         name='admin_withdrawal_reject'),

    # Catalog
    path('api/admin/data-bundles', admin_views.AdminDataBundlesView.as_view(), name='admin_data_bundles'),
    path('api/admin/data-bundles/<int:pk>', admin_views.AdminDataBundleDetailView.as_view(),
         name='admin_data_bundle_detail'),
    path('api/admin/result-checkers', admin_views.AdminResultCheckersView.as_view(), name='admin_result_checkers'),
    path('api/admin/result-checkers/bulk', admin_views.AdminResultCheckersBulkView.as_view(),
         name='admin_result_checkers_bulk'),
    path('api/admin/result-checkers/summary', admin_views.AdminResultCheckersSummaryView.as_view(),
         name='admin_result_checkers_summary'),

    # Settings
    path('api/admin/break-settings', admin_views.AdminBreakSettingsView.as_view(), name='admin_break_settings'),
    path('api/admin/api-config', admin_views.AdminApiConfigView.as_view(), name='admin_api_config'),
    path('api/admin/settings', admin_views.AdminSettingsView.as_view(), name='admin_settings'),
    path('api/admin/settings/<str:key>', admin_views.AdminSettingDetailView.as_view(), name='admin_setting_detail'),

    # Support and provider
    path('api/admin/support/chats', admin_views.AdminSupportChatsView.as_view(), name='admin_support_chats'),
    path('api/admin/support/chat/<int:pk>/assign', admin_views.AdminAssignChatView.as_view(),
         name='admin_assign_chat'),
    path('api/admin/provider/balance', admin_views.AdminProviderBalanceView.as_view(), name='admin_provider_balance'),
]
