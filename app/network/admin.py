"""
Django admin configuration for relationship models.

Staff use these screens to fix up contacts and group rosters that gate who
may message whom.
"""

from django.contrib import admin

from network.models import Contact, Group, GroupMembership, MentorGroup


@admin.register(Contact)
class ContactAdmin(admin.ModelAdmin):
    list_display = ("owner", "contact", "created_at")
    raw_id_fields = ("owner", "contact")


class GroupMembershipInline(admin.TabularInline):
    model = GroupMembership
    raw_id_fields = ("user",)
    extra = 0


@admin.register(Group)
class GroupAdmin(admin.ModelAdmin):
    list_display = ("name", "created_at")
    search_fields = ("name",)
    inlines = [GroupMembershipInline]


@admin.register(MentorGroup)
class MentorGroupAdmin(admin.ModelAdmin):
    list_display = ("name", "mentor", "created_at")
    search_fields = ("name", "mentor__email")
    raw_id_fields = ("mentor",)
    filter_horizontal = ("mentees",)
