from k8s_job_proxy.main import main

main()
