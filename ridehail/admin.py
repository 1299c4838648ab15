from django.contrib import admin
from .models import Booking, BookingRequest, ChatSession, FareBreakdown, PricingRule, RideDetail, TripLocationLog, VehicleType


@admin.register(VehicleType)
class VehicleTypeAdmin(admin.ModelAdmin):
    list_display = ("name", "display_name", "base_fare", "rate_per_km", "rate_per_min", "minimum_fare", "vehicle_multiplier", "surge_enabled", "is_active")
    list_filter = ("is_active", "surge_enabled")


@admin.register(PricingRule)
class PricingRuleAdmin(admin.ModelAdmin):
    list_display = ("rule_key", "rule_value", "is_active", "updated_at")
    search_fields = ("rule_key",)


class RideDetailInline(admin.StackedInline):
    model = RideDetail
    extra = 0


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = ("id", "booking_type", "customer", "provider", "status", "estimated_cost", "actual_cost", "created_at")
    list_filter = ("booking_type", "status")
    readonly_fields = ("created_at", "updated_at")
    inlines = [RideDetailInline]


@admin.register(BookingRequest)
class BookingRequestAdmin(admin.ModelAdmin):
    list_display = ("id", "booking", "provider", "status", "requested_at")
    list_filter = ("status",)


@admin.register(FareBreakdown)
class FareBreakdownAdmin(admin.ModelAdmin):
    list_display = ("booking", "quote_id", "vehicle_type", "total_fare_est", "total_fare_act", "final_fare", "fare_calculated_at")
    search_fields = ("quote_id",)


@admin.register(TripLocationLog)
class TripLocationLogAdmin(admin.ModelAdmin):
    list_display = ("booking", "provider", "event_type", "latitude", "longitude", "recorded_at")
    list_filter = ("event_type",)


admin.site.register(ChatSession)
