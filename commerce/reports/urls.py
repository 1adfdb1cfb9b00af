from django.urls import path
from . import views

urlpatterns = [
    path('reports/revenue/', views.revenue_dashboard, name='report-revenue'),
    path('reports/revenue.csv', views.revenue_export, name='report-revenue-csv'),
    path('reports/receivables/', views.receivables, name='report-receivables'),
    path('reports/debt.csv', views.debt_export, name='report-debt-csv'),
    path('reports/inventory/', views.inventory_analytics, name='report-inventory'),
    path('reports/customers/', views.customer_analytics, name='report-customers'),
    path('reports/dashboard/', views.dashboard_summary, name='report-dashboard'),
    path('reports/planning/', views.revenue_plan, name='report-planning'),
    path('reports/marketing/', views.marketing_analytics, name='report-marketing'),
]
