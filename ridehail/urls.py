from django.urls import path
from .views import (
    AcceptRideView,
    CreateRideBookingView,
    PricingInfoView,
    QuoteValidateView,
    RideQuoteView,
    TripEndView,
    TripLocationUpdateView,
    TripPauseView,
    TripResumeView,
    TripStartView,
    TripStatusView,
    VehicleTypeListView,
)

app_name = 'ridehail'

urlpatterns = [
    # Quotes and pricing
    path('api/ride/quote/', RideQuoteView.as_view(), name='ride_quote'),
    path('api/ride/quote/validate/', QuoteValidateView.as_view(), name='quote_validate'),
    path('api/ride/vehicle-types/', VehicleTypeListView.as_view(), name='vehicle_types'),
    path('api/ride/pricing-info/', PricingInfoView.as_view(), name='pricing_info'),

    # Bookings
    path('api/ride/bookings/', CreateRideBookingView.as_view(), name='create_ride_booking'),
    path('api/ride/bookings/<uuid:pk>/accept/', AcceptRideView.as_view(), name='accept_ride'),

    # Trip lifecycle (workers)
    path('api/trip/start/', TripStartView.as_view(), name='trip_start'),
    path('api/trip/location-update/', TripLocationUpdateView.as_view(), name='trip_location_update'),
    path('api/trip/end/', TripEndView.as_view(), name='trip_end'),
    path('api/trip/pause/', TripPauseView.as_view(), name='trip_pause'),
    path('api/trip/resume/', TripResumeView.as_view(), name='trip_resume'),
    path('api/trip/<uuid:pk>/status/', TripStatusView.as_view(), name='trip_status'),
]
