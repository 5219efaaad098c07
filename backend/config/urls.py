from django.urls import path, include

urlpatterns = [
    path('api/user/', include('user.urls')),
    path('api/community/', include('community.urls')),
    path('api/recommendations/', include('recommendations.urls')),
    path('api/moderation/', include('moderation.urls')),
]
