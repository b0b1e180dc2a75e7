from django.http import HttpResponse
from rest_framework.decorators import api_view, parser_classes, permission_classes
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from portal.serializers.records import RecordListQuerySerializer, RecordUploadSerializer
from portal.services import records as svc
from portal.services.audit import client_ip, log_action


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def list_records_view(request):
    """Query params: q (file name or description contains), category (or "all")"""
    s = RecordListQuerySerializer(data=request.query_params)
    s.is_valid(raise_exception=True)
    qs = svc.list_records(request.user, q=(s.validated_data.get('q') or '').strip() or None,
                          category=s.validated_data.get('category'))
    data = [svc.serialize_record(r, request=request) for r in qs]
    return Response({'ok': True, 'data': data, 'total': len(data)})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
@parser_classes([MultiPartParser, FormParser])
def upload_record_view(request):
    s = RecordUploadSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    v = s.validated_data
    record = svc.upload_record(
        request.user, v['file'], category=v['category'], description=v['description'], ip=client_ip(request),
    )
    return Response({'ok': True, 'data': svc.serialize_record(record, request=request)}, status=201)

upload_record_view.cls.throttle_scope = 'record_write'


@api_view(['GET', 'DELETE'])
@permission_classes([IsAuthenticated])
def record_detail_view(request, pk: int):
    record = svc.get_record(request.user, pk)
    if request.method == 'DELETE':
        svc.delete_record(request.user, record, ip=client_ip(request))
        return Response({'ok': True})
    return Response({'ok': True, 'data': svc.serialize_record(record, request=request)})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def download_record_view(request, pk: int):
    record = svc.get_record(request.user, pk)
    data = svc.read_plaintext(record)
    log_action(user=request.user, action='record_download', object_type='record', object_id=record.id,
               ip=client_ip(request))
    resp = HttpResponse(data, content_type=record.file_type)
    filename = record.file_name.replace('"', '')
    resp['Content-Disposition'] = f'attachment; filename="{filename}"'
    resp['X-Content-SHA256'] = record.sha256
    return resp


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def verify_record_view(request, pk: int):
    record = svc.get_record(request.user, pk)
    return Response({'ok': True, **svc.verify_record(record)})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def storage_usage_view(request):
    return Response({'ok': True, 'data': svc.storage_usage(request.user)})
