"""
URL routing for the training sessions API.
"""

from django.urls import path
from .views import (
    AttendanceView,
    PlayerMetricsView,
    SessionDetailView,
    SessionListCreateView,
    SessionOccurrencesView,
    SessionPlayersView,
    SessionSummaryView,
)

urlpatterns = [
    path('sessions/', SessionListCreateView.as_view(), name='session-list-create'),
    path('sessions/<int:pk>/', SessionDetailView.as_view(), name='session-detail'),
    path('sessions/<int:pk>/occurrences/', SessionOccurrencesView.as_view(), name='session-occurrences'),
    path('sessions/<int:pk>/summary/', SessionSummaryView.as_view(), name='session-summary'),
    path('sessions/<int:pk>/players/', SessionPlayersView.as_view(), name='session-players'),
    path('sessions/<int:pk>/attendance/', AttendanceView.as_view(), name='session-attendance'),
    path('players/<str:pk>/metrics/', PlayerMetricsView.as_view(), name='player-metrics'),
]
